from django.db import models

from .session import Session
from .user_profile import UserProfile


class SessionRating(models.Model):
    session = models.ForeignKey(Session, on_delete=models.CASCADE, related_name="ratings")
    mentor = models.ForeignKey(
        UserProfile, on_delete=models.CASCADE, related_name="ratings_received"
    )
    rater = models.ForeignKey(
        UserProfile, on_delete=models.CASCADE, related_name="ratings_given"
    )
    rating = models.PositiveSmallIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["session", "mentor"], name="unique_rating_per_session_mentor"
            ),
            models.CheckConstraint(
                condition=models.Q(rating__gte=1, rating__lte=5),
                name="session_rating_between_1_and_5",
            ),
        ]

    def __str__(self) -> str:
        return f"Rating {self.rating} for mentor {self.mentor_id} (session {self.session_id})"
