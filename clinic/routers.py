"""
URL mappings for the hospital backend API.

Paths match the ones the patient, reception and admin dashboards call.
Trailing slashes are deliberately omitted.
"""
from django.urls import path

from .auth_views import login_view, jwt_refresh_view, jwt_logout_view
from .views import appointments, billing, campaigns, doctors, health, notifications, requests, webhook


urlpatterns = [
    path('healthz', health.healthz),
    # Authentication
    path('api/auth/login', login_view),
    path('api/auth/refresh', jwt_refresh_view),
    path('api/auth/logout', jwt_logout_view),
    # WhatsApp Cloud API webhook
    path('api/meta-webhook', webhook.meta_webhook),
    # Doctors
    path('api/doctors', doctors.list_doctors),
    path('api/doctors/<int:pk>/slots', doctors.doctor_slots),
    path('api/doctor/schedule-request', requests.schedule_request),
    # Appointments
    path('api/appointments/check-slot', appointments.check_slot),
    path('api/appointments/<int:pk>/mark-not-attended', appointments.mark_not_attended),
    path('api/patient/book-appointment', appointments.book_appointment),
    path('api/patient/appointments', appointments.patient_appointments),
    path('api/patient/refund-request', requests.refund_request),
    # Billing & wallet
    path('api/patient/billing/pay', billing.pay_bill),
    path('api/patient/wallet/topup', billing.wallet_topup),
    # Notifications
    path('api/notifications', notifications.list_notifications),
    path('api/notifications/read', notifications.mark_notifications_read),
    # Reception
    path('api/receptionist/whatsapp-bookings', appointments.whatsapp_bookings),
    path('api/receptionist/whatsapp-bookings/<int:pk>', appointments.update_whatsapp_booking),
    # Admin approvals
    path('api/admin/approve-refund', requests.approve_refund),
    path('api/admin/approve-schedule-request', requests.approve_schedule_request),
    # Campaigns
    path('api/campaigns', campaigns.list_campaigns),
    path('api/campaigns/create', campaigns.create_campaign),
    path('api/campaigns/update', campaigns.update_campaign),
    path('api/campaigns/delete', campaigns.delete_campaign),
]
