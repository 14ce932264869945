from rest_framework import serializers

from clinic.services.billing import PAYMENT_METHODS


class PayBillSerializer(serializers.Serializer):
    billingId = serializers.IntegerField(min_value=1)
    paymentMethod = serializers.ChoiceField(choices=PAYMENT_METHODS, required=False, default='card')
    actor = serializers.ChoiceField(choices=['patient', 'receptionist', 'admin'], required=False)
    type = serializers.ChoiceField(choices=['admission', 'appointment'], required=False)


class WalletTopUpSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1)
    amount = serializers.IntegerField(min_value=1, error_messages={'min_value': 'Amount must be greater than zero'})
    paymentMethod = serializers.ChoiceField(choices=['card', 'upi', 'cash'], required=False, default='card')
