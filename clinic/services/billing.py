"""
Bill payment and the patient wallet.

A bill is either an admission :class:`BillingRecord` or an appointment's own
payment fields; wallet movements are written to :class:`WalletTransaction`.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from clinic.models import Appointment, BillingRecord, Patient, User, WalletTransaction

PAYMENT_METHODS = ('card', 'upi', 'cash', 'wallet', 'demo')


@dataclass
class PaymentReceipt:
    payment_method: str
    paid_at: str
    payment_reference: str
    transaction_id: str
    wallet_balance: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'paymentMethod': self.payment_method,
            'paidAt': self.paid_at,
            'paymentReference': self.payment_reference,
            'transactionId': self.transaction_id,
            'walletBalance': self.wallet_balance,
        }


def _locate(billing_id, billing_type: Optional[str]):
    """(record, is_admission) for ``billing_id``; admission records win unless ``billing_type`` says otherwise."""
    if billing_type != 'appointment':
        record = BillingRecord.objects.select_for_update().filter(pk=billing_id).first()
        if record is not None:
            return record, True
        if billing_type == 'admission':
            raise BillingRecord.DoesNotExist('Billing record not found')
    record = Appointment.objects.select_for_update().filter(pk=billing_id).first()
    if record is None:
        raise BillingRecord.DoesNotExist('Billing record not found')
    return record, False


def pay_bill(user: User, billing_id, method: str = 'card', actor: Optional[str] = None,
             billing_type: Optional[str] = None) -> PaymentReceipt:
    method = method or 'card'
    if method not in PAYMENT_METHODS:
        raise ValueError('Invalid payment method')
    is_patient = getattr(user, 'role', None) == 'patient'
    actor = actor or ('patient' if is_patient else 'receptionist')
    now = timezone.now()
    stamp = int(time.time() * 1000)
    reference, txn = f"BILL-{stamp}", f"TXN-{stamp}"
    balance_after = None

    with transaction.atomic():
        record, is_admission = _locate(billing_id, billing_type)
        if is_admission and record.status == 'paid':
            raise ValueError('Billing record already paid')
        if not is_admission and (record.payment_status == 'paid' or record.paid_at):
            raise ValueError('Appointment already paid')

        patient = Patient.objects.select_for_update().get(pk=record.patient_id)
        if is_patient and patient.user_id != user.id:
            raise PermissionError('You can only pay your own bills')

        if is_admission:
            amount = record.total_amount
        else:
            amount = record.payment_amount or record.consultation_fee

        if method == 'wallet':
            if patient.wallet_balance < amount:
                raise ValueError('Insufficient wallet balance')
            balance_after = patient.wallet_balance - amount
            patient.wallet_balance = balance_after
            patient.save(update_fields=['wallet_balance'])
            WalletTransaction.objects.create(
                patient=patient, type='debit', amount=amount, payment_method='hospital_bill',
                balance_after=balance_after, reference=str(billing_id),
            )

        if is_admission:
            record.status = 'paid'
            record.payment_method = method
            record.paid_at = now
            record.payment_reference = reference
            if actor == 'receptionist':
                record.paid_at_front_desk = True
                record.handled_by = 'receptionist'
                record.settlement_mode = 'walk_in'
            record.save()
        else:
            record.payment_status = 'paid'
            record.payment_method = method
            record.paid_at = now
            record.transaction_id = txn
            record.save(update_fields=['payment_status', 'payment_method', 'paid_at', 'transaction_id', 'updated_at'])

    return PaymentReceipt(method, now.isoformat(), reference, txn, balance_after)


def top_up_wallet(user: User, patient_id, amount, method: str = 'card') -> int:
    """Credit ``amount`` to the patient's wallet and return the new balance."""
    try:
        amount = int(amount)
    except (TypeError, ValueError):
        raise ValueError('Invalid patientId or amount')
    if not patient_id or amount <= 0:
        raise ValueError('Invalid patientId or amount')
    with transaction.atomic():
        patient = Patient.objects.select_for_update().get(pk=patient_id)
        if getattr(user, 'role', None) == 'patient' and patient.user_id != user.id:
            raise PermissionError('You can only top up your own wallet')
        Patient.objects.filter(pk=patient.pk).update(wallet_balance=F('wallet_balance') + amount)
        patient.refresh_from_db(fields=['wallet_balance'])
        WalletTransaction.objects.create(
            patient=patient, type='topup', amount=amount, payment_method=method or 'card',
            balance_after=patient.wallet_balance,
        )
    return patient.wallet_balance
