"""
Management command to populate the database with demo data.
"""
from datetime import timedelta

from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand
from django.utils import timezone

from clinic.models import Appointment, BillingRecord, Doctor, Patient, User
from clinic.services import appointments, campaigns
from clinic.services.timeslots import check_date_availability

DEMO_HOSPITAL = 'harmony-main'

DOCTORS = [
    {'username': 'dr.mehta', 'first_name': 'Anil', 'last_name': 'Mehta', 'specialization': 'General Medicine',
     'consultation_fee': 500},
    {'username': 'dr.shah', 'first_name': 'Priya', 'last_name': 'Shah', 'specialization': 'Pediatrics',
     'consultation_fee': 600},
    {'username': 'dr.patel', 'first_name': 'Rakesh', 'last_name': 'Patel', 'specialization': 'Orthopedics',
     'consultation_fee': 800,
     'visiting_hours': {
         'monday': {'isAvailable': True, 'slots': [{'start': '10:00', 'end': '13:00'}]},
         'wednesday': {'isAvailable': True, 'slots': [{'start': '10:00', 'end': '13:00'}]},
         'friday': {'isAvailable': True, 'slots': [{'start': '15:00', 'end': '18:00'}]},
     }},
]

PATIENTS = [
    {'username': 'patient.desai', 'first_name': 'Kiran', 'last_name': 'Desai', 'phone': '+919876500001'},
    {'username': 'patient.joshi', 'first_name': 'Meera', 'last_name': 'Joshi', 'phone': '+919876500002'},
    {'username': 'patient.rao', 'first_name': 'Vikram', 'last_name': 'Rao', 'phone': '+919876500003'},
]


class Command(BaseCommand):
    help = 'Populate database with demo doctors, patients, appointments and a campaign'

    def handle(self, *args, **options):
        self.stdout.write('Creating demo data...')
        doctors = self.create_doctors()
        patients = self.create_patients()
        self.create_appointments(doctors, patients)
        self.create_bills(patients)
        self.create_campaign()
        self.stdout.write(self.style.SUCCESS('Demo data created.'))

    def create_doctors(self):
        doctors = []
        for data in DOCTORS:
            user, _ = User.objects.get_or_create(
                username=data['username'],
                defaults={'role': 'doctor', 'password': make_password('123456'),
                          'first_name': data['first_name'], 'last_name': data['last_name']},
            )
            doctor, created = Doctor.objects.get_or_create(
                user=user,
                defaults={
                    'first_name': data['first_name'],
                    'last_name': data['last_name'],
                    'specialization': data['specialization'],
                    'consultation_fee': data['consultation_fee'],
                    'visiting_hours': data.get('visiting_hours'),
                },
            )
            doctors.append(doctor)
            self.stdout.write(f'Doctor: {doctor}{"" if created else " (exists)"}')
        return doctors

    def create_patients(self):
        patients = []
        for data in PATIENTS:
            user, _ = User.objects.get_or_create(
                username=data['username'],
                defaults={'role': 'patient', 'password': make_password('123456'), 'phone': data['phone'],
                          'first_name': data['first_name'], 'last_name': data['last_name']},
            )
            patient, created = Patient.objects.get_or_create(
                user=user,
                defaults={'first_name': data['first_name'], 'last_name': data['last_name'],
                          'phone': data['phone'], 'hospital_id': DEMO_HOSPITAL, 'wallet_balance': 1000},
            )
            patients.append(patient)
            self.stdout.write(f'Patient: {patient}{"" if created else " (exists)"}')
        return patients

    def create_appointments(self, doctors, patients):
        if Appointment.objects.exists():
            self.stdout.write('Appointments already present, skipping')
            return
        day = timezone.localdate() + timedelta(days=1)
        for doctor, patient in zip(doctors, patients):
            offset = 0
            while not check_date_availability(day + timedelta(days=offset), doctor).available and offset < 7:
                offset += 1
            payment = appointments.calculate_payment(doctor.consultation_fee, 'cash', 'full')
            appointment = appointments.book_appointment(
                patient=patient, doctor=doctor, day=day + timedelta(days=offset), time='10:00',
                status=Appointment.STATUS_CONFIRMED, chief_complaint='Routine check-up',
                payment_method='cash', payment_status=payment.status,
                consultation_fee=payment.consultation_fee, remaining_amount=payment.remaining,
                created_by='receptionist',
            )
            self.stdout.write(f'Appointment #{appointment.id}: {patient.full_name} with Dr. {doctor.full_name}')

        appointments.create_whatsapp_pending(
            patient=patients[-1], phone=patients[-1].phone, day=day, time='11:30',
            consultation_fee=500,
        )
        self.stdout.write('WhatsApp request awaiting reception')

    def create_bills(self, patients):
        for patient in patients[:2]:
            BillingRecord.objects.get_or_create(
                patient=patient, description='Admission deposit', defaults={'total_amount': 2500},
            )

    def create_campaign(self):
        if campaigns.published_for_audience('patients', DEMO_HOSPITAL):
            return
        campaign = campaigns.create_campaign({
            'title': 'Free Diabetes Screening Camp',
            'content': '<p>Walk in this <strong>Saturday</strong> between 9 AM and 1 PM for a free blood sugar test.</p>',
            'ctaText': 'Book now',
            'ctaHref': '/patient/book-appointment',
            'audience': 'patients',
            'status': 'published',
            'priority': 10,
            'hospitalId': DEMO_HOSPITAL,
        })
        self.stdout.write(f'Campaign: {campaign.slug}')
