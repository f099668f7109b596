from django.contrib.auth import get_user_model
from django.db import transaction
from rest_framework import serializers

from .models import MentorDenial, Session, UserProfile
from .time_ranges import WEEKDAYS, validate_declared_times


User = get_user_model()

MAX_SKILLS = 10
MAX_SKILL_LENGTH = 50
PROFILE_FIELDS = ("name", "avatar_url", "skills_offered", "skills_wanted", "availability")


def ensure_username(base: str) -> str:
    base = (base or "user").strip().lower().replace(" ", "_")
    candidate = base
    index = 1
    while User.objects.filter(username=candidate).exists():
        index += 1
        candidate = f"{base}_{index}"
    return candidate


def clean_skill_list(value, *, limit=MAX_SKILLS):
    if not isinstance(value, list):
        raise serializers.ValidationError("Must be an array of skills.")
    if len(value) > limit:
        raise serializers.ValidationError(f"Must be an array with maximum {limit} items.")
    cleaned = []
    seen = set()
    for item in value:
        if not isinstance(item, str) or not (1 <= len(item.strip()) <= MAX_SKILL_LENGTH):
            raise serializers.ValidationError(
                f"Each skill must be between 1 and {MAX_SKILL_LENGTH} characters."
            )
        skill = item.strip()
        if skill.lower() in seen:
            continue
        seen.add(skill.lower())
        cleaned.append(skill)
    return cleaned


def clean_availability(value):
    """
    Validate an ``{"days": [...], "times": [...]}`` payload.

    Malformed ranges raise ``InvalidTimeRange`` and overlapping ranges raise
    ``OverlappingTimeRanges``; both propagate past the serializer with their
    own status codes.
    """
    if not isinstance(value, dict):
        raise serializers.ValidationError("Availability must be an object with days and times.")
    days = value.get("days", [])
    times = value.get("times", [])
    if not isinstance(days, list):
        raise serializers.ValidationError("Availability days must be an array.")
    if not isinstance(times, list):
        raise serializers.ValidationError("Availability times must be an array.")
    invalid_days = [day for day in days if day not in WEEKDAYS]
    if invalid_days:
        raise serializers.ValidationError(f"Invalid day format: {', '.join(map(str, invalid_days))}")
    ordered_days = [day for day in WEEKDAYS if day in days]
    return {"days": ordered_days, "times": validate_declared_times(times)}


class UserProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = UserProfile
        exclude = ["id", "user", "calendar_access_token"]


class PublicProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = UserProfile
        fields = [
            "uid",
            "name",
            "avatar_url",
            "role",
            "skills_offered",
            "skills_wanted",
            "availability",
            "reputation_score",
            "rating_count",
            "calendar_synced",
            "available_slots",
        ]


class RegisterSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=100)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    role = serializers.ChoiceField(choices=["student", "mentor"], required=False, default="student")
    avatar_url = serializers.URLField(required=False, allow_blank=True)
    skills_offered = serializers.JSONField(required=False)
    skills_wanted = serializers.JSONField(required=False)
    availability = serializers.JSONField(required=False)

    def validate_email(self, value):
        email = value.strip().lower()
        if User.objects.filter(email__iexact=email).exists() or UserProfile.objects.filter(
            email__iexact=email
        ).exists():
            raise serializers.ValidationError("A user with this email is already registered.")
        return email

    def validate_skills_offered(self, value):
        return clean_skill_list(value)

    def validate_skills_wanted(self, value):
        return clean_skill_list(value)

    def validate_availability(self, value):
        return clean_availability(value)

    def create(self, validated_data):
        password = validated_data.pop("password")
        email = validated_data["email"]
        name = validated_data["name"].strip()
        with transaction.atomic():
            user = User.objects.create(
                username=ensure_username(email.split("@")[0]),
                email=email,
                first_name=name[:150],
            )
            user.set_password(password)
            user.save(update_fields=["password"])
            profile = UserProfile.objects.create(
                user=user,
                name=name,
                email=email,
                role=validated_data.get("role", "student"),
                avatar_url=validated_data.get("avatar_url", ""),
                skills_offered=validated_data.get("skills_offered", []),
                skills_wanted=validated_data.get("skills_wanted", []),
                availability=validated_data.get("availability", {"days": [], "times": []}),
            )
        return profile

    def to_representation(self, instance):
        return UserProfileSerializer(instance, context=self.context).data


class ProfileUpdateSerializer(serializers.ModelSerializer):
    skills_offered = serializers.JSONField(required=False)
    skills_wanted = serializers.JSONField(required=False)
    availability = serializers.JSONField(required=False)

    class Meta:
        model = UserProfile
        fields = list(PROFILE_FIELDS)
        extra_kwargs = {
            "name": {"required": False, "min_length": 2, "max_length": 100},
            "avatar_url": {"required": False},
        }

    def validate_skills_offered(self, value):
        return clean_skill_list(value)

    def validate_skills_wanted(self, value):
        return clean_skill_list(value)

    def validate_availability(self, value):
        return clean_availability(value)

    def validate(self, attrs):
        if not any(field in attrs for field in PROFILE_FIELDS):
            raise serializers.ValidationError("At least one profile field must be provided.")
        return attrs

    def to_representation(self, instance):
        return UserProfileSerializer(instance, context=self.context).data


class SessionSerializer(serializers.ModelSerializer):
    organizer_uid = serializers.CharField(source="organizer.uid", read_only=True)
    organizer_name = serializers.CharField(source="organizer.name", read_only=True)
    participant_uid = serializers.CharField(source="participant.uid", read_only=True)
    participant_name = serializers.CharField(source="participant.name", read_only=True)

    class Meta:
        model = Session
        exclude = ["organizer", "participant"]


class BookingRequestSerializer(serializers.Serializer):
    participant_uid = serializers.CharField(required=False, allow_blank=True, default="")
    organizer_access_token = serializers.CharField(required=False, allow_blank=True, default="")
    participant_access_token = serializers.CharField(required=False, allow_blank=True, default="")
    summary = serializers.CharField(required=False, allow_blank=True, max_length=200, default="")
    description = serializers.CharField(required=False, allow_blank=True, default="")
    start_time = serializers.CharField(required=False, allow_blank=True, default="")
    end_time = serializers.CharField(required=False, allow_blank=True, default="")
    skill_topic = serializers.CharField(required=False, allow_blank=True, max_length=100, default="")
    session_type = serializers.CharField(required=False, allow_blank=True, default="learning")


class RateSessionSerializer(serializers.Serializer):
    session_id = serializers.CharField()
    mentor_uid = serializers.CharField()
    # Kept raw so booleans and strings reach the whole-number check unchanged.
    rating = serializers.JSONField()


class DenialSerializer(serializers.ModelSerializer):
    learner_uid = serializers.CharField(source="learner.uid", read_only=True)
    mentor_uid = serializers.CharField(source="mentor.uid", read_only=True)

    class Meta:
        model = MentorDenial
        fields = ["learner_uid", "mentor_uid", "reason", "denied_at"]


class DenyMentorSerializer(serializers.Serializer):
    mentor_uid = serializers.CharField()
    reason = serializers.CharField(required=False, allow_blank=True, max_length=50)


class CalendarTokenSerializer(serializers.Serializer):
    access_token = serializers.CharField(required=False, allow_blank=True, default="")


class MatchQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100)
