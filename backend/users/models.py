import uuid

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone


class UserRole(models.TextChoices):
    MEMBER = "member", "Member"
    STAFF = "staff", "Staff"


class MembershipType(models.TextChoices):
    BASIC = "basic", "Basic"
    PREMIUM = "premium", "Premium"
    STUDENT = "student", "Student"


class User(AbstractUser):
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.MEMBER,
    )
    membership_type = models.CharField(
        max_length=20,
        choices=MembershipType.choices,
        default=MembershipType.BASIC,
        blank=True,
        null=True,
    )
    loyalty_points = models.PositiveIntegerField(default=1250)
    join_date = models.DateTimeField(default=timezone.now)
    last_visit = models.DateTimeField(blank=True, null=True)
    public_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.get_username()

    @property
    def is_member(self) -> bool:
        return self.role == UserRole.MEMBER

    @property
    def is_staff_role(self) -> bool:
        return self.role == UserRole.STAFF

    def record_visit(self) -> None:
        self.last_visit = timezone.now()
        self.save(update_fields=["last_visit"])
