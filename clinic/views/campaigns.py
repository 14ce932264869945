from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from clinic.models import Campaign, Patient
from clinic.permissions import IsAdminRole
from clinic.serializers.campaigns import CampaignIdSerializer, CampaignListQuerySerializer, CampaignWriteSerializer
from clinic.services import campaigns
from clinic.services.audit import log_action


def _viewer_hospital(user):
    return Patient.objects.filter(user=user).values_list('hospital_id', flat=True).first()


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_campaigns(request):
    """Published campaigns for ``audience``.

    Patients always get their own hospital's; staff pick one with ``hospitalId``.
    """
    s = CampaignListQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    if getattr(request.user, 'role', None) == 'patient':
        hospital_id = _viewer_hospital(request.user)
    else:
        hospital_id = s.validated_data.get('hospitalId')
    data = campaigns.cached_published(s.validated_data['audience'], hospital_id)
    return Response({'ok': True, 'data': data})


@api_view(['POST'])
@permission_classes([IsAdminRole])
def create_campaign(request):
    s = CampaignWriteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    data = dict(s.validated_data)
    data.pop('id', None)
    try:
        campaign = campaigns.create_campaign(data, user=request.user)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)
    try:
        log_action(user=request.user, action='campaign_create', object_type='campaign', object_id=campaign.id,
                   detail={'slug': campaign.slug})
    except Exception:
        pass
    return Response({'ok': True, 'data': campaigns.serialize(campaign)}, status=201)


@api_view(['POST'])
@permission_classes([IsAdminRole])
def update_campaign(request):
    s = CampaignWriteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    data = dict(s.validated_data)
    campaign_id = data.pop('id', None)
    if not campaign_id:
        return Response({'ok': False, 'detail': 'id is required'}, status=400)
    try:
        campaign = campaigns.update_campaign(campaign_id, data, user=request.user)
    except Campaign.DoesNotExist:
        return Response({'ok': False, 'detail': 'Campaign not found'}, status=404)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)
    try:
        log_action(user=request.user, action='campaign_update', object_type='campaign', object_id=campaign.id,
                   detail={'fields': sorted(data)})
    except Exception:
        pass
    return Response({'ok': True, 'data': campaigns.serialize(campaign)})


@api_view(['POST'])
@permission_classes([IsAdminRole])
def delete_campaign(request):
    s = CampaignIdSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    campaign_id = s.validated_data['id']
    try:
        campaigns.delete_campaign(campaign_id)
    except Campaign.DoesNotExist:
        return Response({'ok': False, 'detail': 'Campaign not found'}, status=404)
    try:
        log_action(user=request.user, action='campaign_delete', object_type='campaign', object_id=campaign_id)
    except Exception:
        pass
    return Response({'ok': True})
