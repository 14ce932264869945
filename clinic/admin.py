"""
Django admin registrations for the clinic models.

Superusers can inspect bookings, WhatsApp sessions and the approval
queues at ``/admin/``.
"""

from django.contrib import admin

from .models import (
    User,
    Doctor,
    Patient,
    Appointment,
    AppointmentSlot,
    Campaign,
    BookingSession,
    RefundRequest,
    ScheduleRequest,
    BillingRecord,
    WalletTransaction,
    Notification,
    OutboundMessage,
    AuditEvent,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'phone', 'is_staff', 'is_superuser')
    list_filter = ('role',)
    search_fields = ('username', 'first_name', 'last_name', 'phone')


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ('id', 'first_name', 'last_name', 'specialization', 'status', 'consultation_fee')
    list_filter = ('status', 'specialization')
    search_fields = ('first_name', 'last_name', 'email')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('id', 'first_name', 'last_name', 'phone', 'hospital_id', 'wallet_balance')
    list_filter = ('hospital_id',)
    search_fields = ('first_name', 'last_name', 'phone', 'email')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient_name', 'doctor_name', 'appointment_date', 'appointment_time', 'status',
                    'payment_status', 'created_by')
    list_filter = ('status', 'payment_status', 'created_by', 'whatsapp_pending')
    search_fields = ('patient_name', 'patient_phone', 'doctor_name')
    date_hierarchy = 'appointment_date'


@admin.register(AppointmentSlot)
class AppointmentSlotAdmin(admin.ModelAdmin):
    list_display = ('id', 'doctor', 'appointment_date', 'appointment_time', 'appointment')
    search_fields = ('id',)


@admin.register(Campaign)
class CampaignAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'audience', 'status', 'priority', 'hospital_id', 'start_at', 'end_at')
    list_filter = ('status', 'audience')
    search_fields = ('title', 'slug')


@admin.register(BookingSession)
class BookingSessionAdmin(admin.ModelAdmin):
    list_display = ('phone', 'state', 'language', 'appointment_date', 'appointment_time', 'updated_at')
    list_filter = ('state', 'language')
    search_fields = ('phone',)


@admin.register(RefundRequest)
class RefundRequestAdmin(admin.ModelAdmin):
    list_display = ('id', 'appointment', 'patient', 'payment_amount', 'status', 'created_at')
    list_filter = ('status',)


@admin.register(ScheduleRequest)
class ScheduleRequestAdmin(admin.ModelAdmin):
    list_display = ('id', 'doctor', 'request_type', 'status', 'conflicts_detected', 'created_at')
    list_filter = ('status', 'request_type')


@admin.register(BillingRecord)
class BillingRecordAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'description', 'total_amount', 'status', 'payment_method', 'paid_at')
    list_filter = ('status', 'payment_method')


@admin.register(WalletTransaction)
class WalletTransactionAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'type', 'amount', 'balance_after', 'created_at')
    list_filter = ('type',)


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'type', 'title', 'read', 'created_at')
    list_filter = ('type', 'read')


@admin.register(OutboundMessage)
class OutboundMessageAdmin(admin.ModelAdmin):
    list_display = ('id', 'appointment', 'kind', 'phone', 'status', 'created_at')
    list_filter = ('kind', 'status')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'action', 'object_type', 'object_id', 'created_at')
    list_filter = ('action',)
    search_fields = ('object_id',)
