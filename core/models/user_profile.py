import uuid

from django.conf import settings
from django.db import models


def generate_uid() -> str:
    return uuid.uuid4().hex


def default_availability():
    return {"days": [], "times": []}


class UserProfile(models.Model):
    ROLE_CHOICES = [
        ('student', 'Student'),
        ('mentor', 'Mentor'),
        ('admin', 'Admin'),
    ]

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="skillswap_profile",
    )
    uid = models.CharField(max_length=128, unique=True, default=generate_uid)
    name = models.CharField(max_length=100)
    email = models.EmailField(unique=True)
    avatar_url = models.URLField(blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='student')
    skills_offered = models.JSONField(default=list, blank=True)
    skills_wanted = models.JSONField(default=list, blank=True)
    availability = models.JSONField(default=default_availability, blank=True)
    reputation_score = models.DecimalField(max_digits=4, decimal_places=2, default=0)
    rating_count = models.PositiveIntegerField(default=0)
    total_rating_points = models.PositiveIntegerField(default=0)
    calendar_connected = models.BooleanField(default=False)
    calendar_access_token = models.TextField(blank=True)
    calendar_synced = models.BooleanField(default=False)
    calendar_busy_times = models.JSONField(default=list, blank=True)
    available_slots = models.JSONField(default=list, blank=True)
    calendar_last_sync = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True, null=True, blank=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.name} ({self.role})"
