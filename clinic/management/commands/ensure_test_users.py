from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password
from clinic.models import Doctor, Patient, User

TEST_SET = [
    ("admin1", "admin"),
    ("reception1", "receptionist"),
    ("doctor1", "doctor"),
    ("patient1", "patient"),
]

class Command(BaseCommand):
    help = "Ensure one test user per role exists with password=123456 (idempotent)."

    def handle(self, *args, **opts):
        for username, role in TEST_SET:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={"role": role, "password": make_password("123456"), "is_active": True},
            )
            if not created:
                u.password = make_password("123456")
                u.role = role
                u.is_active = True
                u.save(update_fields=["password", "role", "is_active"])
            if role == "doctor":
                Doctor.objects.get_or_create(user=u, defaults={"first_name": "Test", "last_name": "Doctor"})
            elif role == "patient":
                Patient.objects.get_or_create(user=u, defaults={"first_name": "Test", "last_name": "Patient"})
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
