from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from clinic.models import BillingRecord, Patient
from clinic.permissions import IsPatientOrStaff
from clinic.serializers.billing import PayBillSerializer, WalletTopUpSerializer
from clinic.services import billing
from clinic.services.audit import log_action


@api_view(['POST'])
@permission_classes([IsPatientOrStaff])
def pay_bill(request):
    """Settle an admission bill or an appointment payment.

    Body: ``billingId``, ``paymentMethod`` (card|upi|cash|wallet|demo),
    optional ``actor`` and ``type`` (admission|appointment).
    """
    s = PayBillSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        receipt = billing.pay_bill(request.user, vd['billingId'], vd['paymentMethod'],
                                   actor=vd.get('actor'), billing_type=vd.get('type'))
    except PermissionError as e:
        return Response({'ok': False, 'detail': str(e)}, status=403)
    except BillingRecord.DoesNotExist:
        return Response({'ok': False, 'detail': 'Billing record not found'}, status=404)
    except Patient.DoesNotExist:
        return Response({'ok': False, 'detail': 'Patient not found'}, status=404)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)

    try:
        log_action(user=request.user, action='bill_paid', object_type='billing', object_id=vd['billingId'],
                   detail={'method': receipt.payment_method, 'reference': receipt.payment_reference})
    except Exception:
        pass
    return Response({'ok': True, **receipt.as_dict()})


@api_view(['POST'])
@permission_classes([IsPatientOrStaff])
def wallet_topup(request):
    s = WalletTopUpSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        balance = billing.top_up_wallet(request.user, vd['patientId'], vd['amount'], vd['paymentMethod'])
    except PermissionError as e:
        return Response({'ok': False, 'detail': str(e)}, status=403)
    except Patient.DoesNotExist:
        return Response({'ok': False, 'detail': 'Patient not found'}, status=404)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)

    try:
        log_action(user=request.user, action='wallet_topup', object_type='patient', object_id=vd['patientId'],
                   detail={'amount': vd['amount'], 'method': vd['paymentMethod']})
    except Exception:
        pass
    return Response({'ok': True, 'success': True, 'walletBalance': balance})
