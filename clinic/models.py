"""
Database models for the HMS backend.

These models capture the core concepts of the system: users with a role,
doctors and their visiting hours, patients and their wallet, appointments
and the slot rows that guard them against double booking, campaigns, the
per-phone WhatsApp booking sessions and the request/approval records the
admin desk works through.
"""
from __future__ import annotations

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Custom user model with a role.

    Roles mirror the front-end dashboards: 'patient', 'doctor',
    'receptionist' and 'admin'.
    """
    ROLE_CHOICES = [
        ('patient', 'Patient'),
        ('doctor', 'Doctor'),
        ('receptionist', 'Receptionist'),
        ('admin', 'Administrator'),
    ]
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default='patient', db_index=True)
    phone = models.CharField(max_length=20, blank=True)

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Doctor(models.Model):
    """A doctor who can be booked.

    ``visiting_hours`` maps lowercase day names to
    ``{"isAvailable": bool, "slots": [{"start": "09:00", "end": "13:00"}]}``;
    when empty the hospital defaults apply.  ``blocked_dates`` holds the
    dates the doctor is on leave, either as ``"YYYY-MM-DD"`` strings or
    ``{"date": ..., "reason": ...}`` objects.
    """
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
    ]
    user = models.OneToOneField(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='doctor_profile'
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True)
    email = models.EmailField(blank=True)
    specialization = models.CharField(max_length=120, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default='active', db_index=True)
    consultation_fee = models.PositiveIntegerField(default=500)
    visiting_hours = models.JSONField(null=True, blank=True)
    blocked_dates = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return f"Dr. {self.full_name} ({self.specialization or 'General'})"


class Patient(models.Model):
    """Registered patient; WhatsApp senders are matched on ``phone``."""
    user = models.OneToOneField(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='patient_profile'
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True, db_index=True)
    wallet_balance = models.IntegerField(default=0)
    hospital_id = models.CharField(max_length=64, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return f"{self.full_name} ({self.phone})"


class Appointment(models.Model):
    STATUS_PENDING = 'pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_WHATSAPP_PENDING = 'whatsapp_pending'
    STATUS_AWAITING_RESCHEDULE = 'awaiting_reschedule'
    STATUS_DOCTOR_CANCELLED = 'doctor_cancelled'
    STATUS_NOT_ATTENDED = 'not_attended'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'pending'),
        (STATUS_CONFIRMED, 'confirmed'),
        (STATUS_COMPLETED, 'completed'),
        (STATUS_CANCELLED, 'cancelled'),
        (STATUS_WHATSAPP_PENDING, 'whatsapp_pending'),
        (STATUS_AWAITING_RESCHEDULE, 'awaiting_reschedule'),
        (STATUS_DOCTOR_CANCELLED, 'doctor_cancelled'),
        (STATUS_NOT_ATTENDED, 'not_attended'),
    ]

    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='appointments')
    doctor = models.ForeignKey(
        Doctor, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointments'
    )
    # Snapshot of names at booking time
    patient_name = models.CharField(max_length=200, blank=True)
    patient_phone = models.CharField(max_length=20, blank=True)
    patient_email = models.EmailField(blank=True)
    doctor_name = models.CharField(max_length=200, blank=True)
    doctor_specialization = models.CharField(max_length=120, blank=True)

    appointment_date = models.DateField(db_index=True)
    appointment_time = models.CharField(max_length=5, blank=True, help_text="HH:MM, empty while unassigned")
    status = models.CharField(max_length=24, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    chief_complaint = models.TextField(blank=True)
    medical_history = models.TextField(blank=True)
    symptom_category = models.CharField(max_length=64, blank=True)

    payment_method = models.CharField(max_length=16, default='cash')
    payment_type = models.CharField(max_length=16, default='full')
    payment_status = models.CharField(max_length=16, default='pending')
    consultation_fee = models.PositiveIntegerField(default=0)
    payment_amount = models.PositiveIntegerField(default=0)
    remaining_amount = models.PositiveIntegerField(default=0)
    transaction_id = models.CharField(max_length=64, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    refund_requested = models.BooleanField(default=False)
    refund_approved = models.BooleanField(default=False)
    refund_amount = models.PositiveIntegerField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    cancellation_reason = models.CharField(max_length=64, blank=True)
    affected_by_request = models.ForeignKey(
        'ScheduleRequest', null=True, blank=True, on_delete=models.SET_NULL, related_name='affected_appointments'
    )
    conflict_detected_at = models.DateTimeField(null=True, blank=True)
    not_attended_at = models.DateTimeField(null=True, blank=True)
    marked_not_attended_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )

    created_by = models.CharField(max_length=24, default='patient')
    whatsapp_pending = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['patient', 'appointment_date']),
            models.Index(fields=['doctor', 'appointment_date', 'status']),
        ]

    def __str__(self) -> str:
        return f"appt {self.pk} p={self.patient_id} d={self.doctor_id} {self.appointment_date} {self.appointment_time}"


class AppointmentSlot(models.Model):
    """One row per booked (doctor, date, time); the key makes a slot single-use."""
    id = models.CharField(max_length=120, primary_key=True)
    appointment = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name='slots')
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='slots')
    appointment_date = models.DateField()
    appointment_time = models.CharField(max_length=5)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.id


class Campaign(models.Model):
    AUDIENCE_CHOICES = [
        ('all', 'All'),
        ('patients', 'Patients'),
        ('doctors', 'Doctors'),
    ]
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('published', 'Published'),
        ('archived', 'Archived'),
    ]
    title = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, db_index=True)
    content = models.TextField(blank=True)
    image_url = models.URLField(blank=True)
    cta_text = models.CharField(max_length=100, blank=True)
    cta_href = models.CharField(max_length=500, blank=True)
    audience = models.CharField(max_length=16, choices=AUDIENCE_CHOICES, default='all')
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default='draft', db_index=True)
    priority = models.IntegerField(default=0)
    start_at = models.DateTimeField(null=True, blank=True)
    end_at = models.DateTimeField(null=True, blank=True)
    hospital_id = models.CharField(max_length=64, blank=True, null=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    updated_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.title} [{self.status}]"


class BookingSession(models.Model):
    """WhatsApp booking conversation state, one row per normalized phone."""
    STATE_IDLE = 'idle'
    STATE_SELECTING_LANGUAGE = 'selecting_language'
    STATE_SELECTING_DATE = 'selecting_date'
    STATE_SELECTING_TIME = 'selecting_time'
    STATE_CONFIRMING = 'confirming'
    STATE_CHOICES = [
        (STATE_IDLE, 'idle'),
        (STATE_SELECTING_LANGUAGE, 'selecting_language'),
        (STATE_SELECTING_DATE, 'selecting_date'),
        (STATE_SELECTING_TIME, 'selecting_time'),
        (STATE_CONFIRMING, 'confirming'),
    ]
    phone = models.CharField(max_length=20, primary_key=True)
    state = models.CharField(max_length=24, default=STATE_IDLE)
    language = models.CharField(max_length=8, default='english')
    needs_registration = models.BooleanField(default=False)
    doctor = models.ForeignKey(Doctor, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    appointment_date = models.DateField(null=True, blank=True)
    appointment_time = models.CharField(max_length=5, blank=True)
    symptoms = models.TextField(blank=True)
    payment_method = models.CharField(max_length=16, blank=True)
    payment_type = models.CharField(max_length=16, blank=True)
    consultation_fee = models.PositiveIntegerField(null=True, blank=True)
    payment_amount = models.PositiveIntegerField(null=True, blank=True)
    remaining_amount = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"session {self.phone} [{self.state}]"


class RefundRequest(models.Model):
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
    ]
    appointment = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name='refund_requests')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='refund_requests')
    reason = models.TextField(blank=True)
    payment_amount = models.PositiveIntegerField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default='pending', db_index=True)
    approved_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"refund {self.pk} appt={self.appointment_id} [{self.status}]"


class ScheduleRequest(models.Model):
    TYPE_CHOICES = [
        ('visitingHours', 'Visiting hours'),
        ('blockedDates', 'Blocked dates'),
        ('both', 'Both'),
    ]
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
    ]
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='schedule_requests')
    request_type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    visiting_hours = models.JSONField(null=True, blank=True)
    blocked_dates = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default='pending', db_index=True)
    conflicts_detected = models.PositiveIntegerField(default=0)
    awaiting_count = models.PositiveIntegerField(default=0)
    cancelled_count = models.PositiveIntegerField(default=0)
    approved_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"schedule {self.pk} d={self.doctor_id} {self.request_type} [{self.status}]"


class BillingRecord(models.Model):
    """Admission/ward bill; appointments carry their own payment fields."""
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='billing_records')
    description = models.CharField(max_length=255, blank=True)
    total_amount = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=16, default='pending')
    payment_method = models.CharField(max_length=16, blank=True)
    payment_reference = models.CharField(max_length=64, blank=True)
    transaction_id = models.CharField(max_length=64, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    paid_at_front_desk = models.BooleanField(default=False)
    handled_by = models.CharField(max_length=16, blank=True)
    settlement_mode = models.CharField(max_length=16, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"bill {self.pk} p={self.patient_id} {self.total_amount} [{self.status}]"


class WalletTransaction(models.Model):
    TYPE_CHOICES = [
        ('topup', 'Top-up'),
        ('debit', 'Debit'),
    ]
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='wallet_transactions')
    type = models.CharField(max_length=8, choices=TYPE_CHOICES)
    amount = models.PositiveIntegerField()
    payment_method = models.CharField(max_length=24, blank=True)
    balance_after = models.IntegerField(null=True, blank=True)
    reference = models.CharField(max_length=64, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.type} {self.amount} p={self.patient_id}"


class Notification(models.Model):
    user = models.ForeignKey(User, null=True, blank=True, on_delete=models.CASCADE, related_name='notifications')
    patient = models.ForeignKey(Patient, null=True, blank=True, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=16, default='info')
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True)
    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self) -> str:
        return self.title


class AppointmentChangeEvent(models.Model):
    appointment = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name='change_events')
    type = models.CharField(max_length=32)
    previous_status = models.CharField(max_length=24)
    next_status = models.CharField(max_length=24)
    request = models.ForeignKey(ScheduleRequest, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)


class OutboundMessage(models.Model):
    """WhatsApp messages sent on behalf of the hospital (reminders, notices)."""
    KIND_CHOICES = [
        ('reminder_24h', '24 hour reminder'),
        ('not_attended', 'Not attended'),
        ('confirmation', 'Confirmation'),
    ]
    appointment = models.ForeignKey(Appointment, on_delete=models.CASCADE, related_name='outbound_messages')
    kind = models.CharField(max_length=16, choices=KIND_CHOICES)
    phone = models.CharField(max_length=20)
    status = models.CharField(max_length=8, default='sent')
    message_id = models.CharField(max_length=128, blank=True)
    error = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['appointment', 'kind', 'status'])]


class AuditEvent(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['object_type', 'object_id', 'created_at']),
        ]
