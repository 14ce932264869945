"""
Authentication views.

Login issues both a DRF token (``Authorization: Token <key>``) and a
simplejwt access/refresh pair.  They live apart from
``clinic.authentication`` so DRF can import the authentication class
without pulling in the views.
"""
from __future__ import annotations

from django.contrib.auth import authenticate
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from clinic.serializers.auth import LoginSerializer
from clinic.services.audit import log_action

from .models import Doctor, Patient, User


def _profile_for(user: User) -> dict | None:
    if user.role == 'patient':
        p = Patient.objects.filter(user=user).first()
        if p:
            return {'patientId': p.id, 'hospitalId': p.hospital_id, 'walletBalance': p.wallet_balance}
    if user.role == 'doctor':
        d = Doctor.objects.filter(user=user).first()
        if d:
            return {'doctorId': d.id, 'specialization': d.specialization}
    return None


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    """Username/password login for every role."""
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    user = authenticate(request, username=vd['username'], password=vd['password'])
    if not user:
        try:
            log_action(user=None, action='login', object_type='user', object_id=None,
                       detail={'result': 'fail', 'username': vd['username'], 'ip': request.META.get('REMOTE_ADDR')})
        except Exception:
            pass
        return Response({'ok': False, 'detail': 'Invalid username or password'}, status=400)

    try:
        log_action(user=user, action='login', object_type='user', object_id=user.id,
                   detail={'result': 'ok', 'ip': request.META.get('REMOTE_ADDR')})
    except Exception:
        pass

    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)

    payload: dict[str, object] = {
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': {
            'id': user.id,
            'username': user.username,
            'name': user.get_full_name() or user.username,
            'role': user.role,
        },
    }
    profile = _profile_for(user)
    if profile:
        payload['profile'] = profile
    return Response(payload, status=200)

login_view.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from refresh token."""
    view = TokenRefreshView.as_view()
    resp = view(request._request)
    if isinstance(resp, Response):
        data = dict(resp.data)
        if 'access' in data and 'jwt_access' not in data:
            data['jwt_access'] = data.pop('access')
        return Response(data, status=resp.status_code)
    return resp


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist current user's refresh tokens (all or a given one)."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except Exception as e:
            return Response({'ok': False, 'detail': str(e)}, status=400)
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    return Response({'ok': True, 'blacklisted': count})
