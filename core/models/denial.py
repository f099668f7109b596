from django.db import models

from .user_profile import UserProfile


class MentorDenial(models.Model):
    learner = models.ForeignKey(UserProfile, on_delete=models.CASCADE, related_name="denials")
    mentor = models.ForeignKey(
        UserProfile, on_delete=models.CASCADE, related_name="denied_by"
    )
    reason = models.CharField(max_length=50, default="user_rejection")
    denied_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-denied_at", "-id"]
        constraints = [
            models.UniqueConstraint(fields=["learner", "mentor"], name="unique_denial_per_pair"),
        ]

    def __str__(self) -> str:
        return f"{self.learner_id} denied {self.mentor_id}"
