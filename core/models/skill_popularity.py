from django.db import models


class SkillPopularity(models.Model):
    key = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=50)
    count = models.IntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-count", "key"]
        verbose_name_plural = "skill popularity"

    def __str__(self) -> str:
        return f"{self.name} ({self.count})"
