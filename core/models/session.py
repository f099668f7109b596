from django.db import models

from .user_profile import UserProfile


class Session(models.Model):
    STATUS_CONFIRMED = "confirmed"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"
    STATUS_CHOICES = [
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]
    TYPE_CHOICES = [
        ("learning", "Learning"),
        ("teaching", "Teaching"),
    ]

    organizer = models.ForeignKey(
        UserProfile, on_delete=models.CASCADE, related_name="organized_sessions"
    )
    participant = models.ForeignKey(
        UserProfile, on_delete=models.CASCADE, related_name="joined_sessions"
    )
    summary = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    skill_topic = models.CharField(max_length=100)
    session_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default="learning")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_CONFIRMED)
    organizer_event_id = models.CharField(max_length=255, blank=True)
    organizer_event_link = models.URLField(max_length=500, blank=True)
    participant_event_id = models.CharField(max_length=255, blank=True)
    participant_event_link = models.URLField(max_length=500, blank=True)
    hangout_link = models.URLField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True, null=True, blank=True)

    class Meta:
        ordering = ["-start_time", "-id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(start_time__lt=models.F("end_time")),
                name="session_start_before_end",
            ),
        ]

    @property
    def participants(self):
        return {self.organizer.uid, self.participant.uid}

    def __str__(self) -> str:
        return f"Session {self.id} ({self.organizer_id} <-> {self.participant_id})"
