import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import core.models.user_profile


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="SkillPopularity",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(max_length=50, unique=True)),
                ("name", models.CharField(max_length=50)),
                ("count", models.IntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-count", "key"],
                "verbose_name_plural": "skill popularity",
            },
        ),
        migrations.CreateModel(
            name="UserProfile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uid", models.CharField(default=core.models.user_profile.generate_uid, max_length=128, unique=True)),
                ("name", models.CharField(max_length=100)),
                ("email", models.EmailField(max_length=254, unique=True)),
                ("avatar_url", models.URLField(blank=True)),
                (
                    "role",
                    models.CharField(
                        choices=[("student", "Student"), ("mentor", "Mentor"), ("admin", "Admin")],
                        default="student",
                        max_length=20,
                    ),
                ),
                ("skills_offered", models.JSONField(blank=True, default=list)),
                ("skills_wanted", models.JSONField(blank=True, default=list)),
                ("availability", models.JSONField(blank=True, default=core.models.user_profile.default_availability)),
                ("reputation_score", models.DecimalField(decimal_places=2, default=0, max_digits=4)),
                ("rating_count", models.PositiveIntegerField(default=0)),
                ("total_rating_points", models.PositiveIntegerField(default=0)),
                ("calendar_connected", models.BooleanField(default=False)),
                ("calendar_access_token", models.TextField(blank=True)),
                ("calendar_synced", models.BooleanField(default=False)),
                ("calendar_busy_times", models.JSONField(blank=True, default=list)),
                ("available_slots", models.JSONField(blank=True, default=list)),
                ("calendar_last_sync", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True, null=True, blank=True)),
                (
                    "user",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="skillswap_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="Session",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("summary", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True)),
                ("start_time", models.DateTimeField()),
                ("end_time", models.DateTimeField()),
                ("skill_topic", models.CharField(max_length=100)),
                (
                    "session_type",
                    models.CharField(
                        choices=[("learning", "Learning"), ("teaching", "Teaching")],
                        default="learning",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("confirmed", "Confirmed"), ("completed", "Completed"), ("cancelled", "Cancelled")],
                        default="confirmed",
                        max_length=20,
                    ),
                ),
                ("organizer_event_id", models.CharField(blank=True, max_length=255)),
                ("organizer_event_link", models.URLField(blank=True, max_length=500)),
                ("participant_event_id", models.CharField(blank=True, max_length=255)),
                ("participant_event_link", models.URLField(blank=True, max_length=500)),
                ("hangout_link", models.URLField(blank=True, max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True, null=True, blank=True)),
                (
                    "organizer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="organized_sessions",
                        to="core.userprofile",
                    ),
                ),
                (
                    "participant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="joined_sessions",
                        to="core.userprofile",
                    ),
                ),
            ],
            options={
                "ordering": ["-start_time", "-id"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(start_time__lt=models.F("end_time")),
                        name="session_start_before_end",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SessionRating",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("rating", models.PositiveSmallIntegerField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "mentor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="ratings_received",
                        to="core.userprofile",
                    ),
                ),
                (
                    "rater",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="ratings_given",
                        to="core.userprofile",
                    ),
                ),
                (
                    "session",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="ratings",
                        to="core.session",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("session", "mentor"), name="unique_rating_per_session_mentor"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(rating__gte=1, rating__lte=5),
                        name="session_rating_between_1_and_5",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="MentorDenial",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reason", models.CharField(default="user_rejection", max_length=50)),
                ("denied_at", models.DateTimeField(auto_now_add=True)),
                (
                    "learner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="denials",
                        to="core.userprofile",
                    ),
                ),
                (
                    "mentor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="denied_by",
                        to="core.userprofile",
                    ),
                ),
            ],
            options={
                "ordering": ["-denied_at", "-id"],
                "constraints": [
                    models.UniqueConstraint(fields=("learner", "mentor"), name="unique_denial_per_pair"),
                ],
            },
        ),
    ]
