import logging

from django.contrib.auth.models import update_last_login
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import RefreshToken

from . import google_calendar
from .availability import sync_calendar_availability
from .booking import BookingRequest, book_two_way_session
from .errors import InvalidInput, NotAuthorized, NotFound
from .matching_logic import find_matches, get_mentor_profile, store_denial
from .models import Session, SkillPopularity, UserProfile
from .permissions import (
    ROLE_ADMIN,
    HasSkillSwapProfile,
    IsAdminRole,
    IsAuthenticatedWithAppRole,
    user_profile,
    user_role,
)
from .ratings import submit_rating
from .serializers import (
    BookingRequestSerializer,
    CalendarTokenSerializer,
    DenialSerializer,
    DenyMentorSerializer,
    MatchQuerySerializer,
    ProfileUpdateSerializer,
    PublicProfileSerializer,
    RateSessionSerializer,
    RegisterSerializer,
    SessionSerializer,
    UserProfileSerializer,
)
from .stores import default_stores

logger = logging.getLogger(__name__)

PROFILE_PERMISSIONS = [IsAuthenticatedWithAppRole, HasSkillSwapProfile]


def success(message, data=None, status_code=status.HTTP_200_OK):
    return Response({"success": True, "message": message, "data": data}, status=status_code)


def current_profile(request):
    profile = user_profile(request.user)
    if profile is None:
        raise NotFound("User profile not found")
    return profile


def build_auth_token_payload(user, profile):
    refresh = RefreshToken.for_user(user)
    for token in (refresh, refresh.access_token):
        token["role"] = profile.role
        token["uid"] = profile.uid
        token["email"] = user.email
    if api_settings.UPDATE_LAST_LOGIN:
        update_last_login(None, user)
    return {
        "refresh": str(refresh),
        "access": str(refresh.access_token),
    }


class RegisterView(GenericAPIView):
    permission_classes = [AllowAny]
    serializer_class = RegisterSerializer

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        profile = serializer.save()
        logger.info("User registered successfully: %s (%s)", profile.uid, profile.role)
        return success(
            "User registered successfully",
            {
                "user": serializer.to_representation(profile),
                "tokens": build_auth_token_payload(profile.user, profile),
            },
            status.HTTP_201_CREATED,
        )


class LogoutView(APIView):
    permission_classes = [IsAuthenticatedWithAppRole]

    def post(self, request):
        return success("Logout acknowledged on server.")


class ProfileMeView(APIView):
    permission_classes = PROFILE_PERMISSIONS

    def get(self, request):
        profile = current_profile(request)
        return success("Profile retrieved successfully", UserProfileSerializer(profile).data)


class ProfileUpdateView(APIView):
    permission_classes = PROFILE_PERMISSIONS

    def post(self, request):
        profile = current_profile(request)
        serializer = ProfileUpdateSerializer(profile, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        profile = serializer.save()
        logger.info("Profile updated for user %s: %s", profile.uid, ", ".join(serializer.validated_data))
        return success("Profile updated successfully", serializer.data)

    patch = post


class ProfileDetailView(APIView):
    permission_classes = [IsAuthenticatedWithAppRole]

    def get_object(self, uid):
        profile = UserProfile.objects.filter(uid=uid).first()
        if profile is None:
            raise NotFound("User not found")
        return profile

    def get(self, request, uid):
        profile = self.get_object(uid)
        return success("Profile retrieved successfully", PublicProfileSerializer(profile).data)

    def delete(self, request, uid):
        profile = self.get_object(uid)
        requester = user_profile(request.user)
        is_self = requester is not None and requester.pk == profile.pk
        if not is_self and user_role(request.user) != ROLE_ADMIN:
            raise NotAuthorized("You can only delete your own profile")
        with transaction.atomic():
            if profile.user_id:
                profile.user.delete()
            else:
                profile.delete()
        logger.info("Profile %s deleted by %s", uid, request.user.pk)
        return success("Profile deleted successfully", {"uid": uid})


class AdminStatsView(APIView):
    permission_classes = [IsAdminRole]

    def get(self, request):
        by_role = dict(
            UserProfile.objects.values_list("role").annotate(total=Count("id")).order_by()
        )
        popular = SkillPopularity.objects.filter(count__gt=0).order_by("-count", "key")
        return success(
            "Admin statistics retrieved successfully",
            {
                "total_users": UserProfile.objects.count(),
                "users_by_role": {role: by_role.get(role, 0) for role, _label in UserProfile.ROLE_CHOICES},
                "popular_skills": [
                    {"name": item.name, "count": item.count} for item in popular[:10]
                ],
                "total_unique_skills": popular.count(),
                "generated_at": timezone.now().isoformat(),
            },
        )


class CalendarConnectView(APIView):
    permission_classes = PROFILE_PERMISSIONS

    def post(self, request):
        profile = current_profile(request)
        serializer = CalendarTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        token = serializer.validated_data["access_token"]
        if not token:
            raise InvalidInput("Google Calendar access token is required")
        profile.calendar_access_token = token
        profile.calendar_connected = True
        profile.save(update_fields=["calendar_access_token", "calendar_connected", "updated_at"])
        logger.info("Calendar connected for user %s", profile.uid)
        return success("Calendar connected successfully", {"calendar_connected": True})


class CalendarSyncView(APIView):
    permission_classes = PROFILE_PERMISSIONS

    def post(self, request):
        profile = current_profile(request)
        serializer = CalendarTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        stores = default_stores()
        result = sync_calendar_availability(
            profile.uid,
            serializer.validated_data["access_token"],
            profiles=stores.profiles,
            sessions=stores.sessions,
            calendar=google_calendar,
        )
        return success(
            "Calendar synced and availability updated successfully",
            {
                "available_slots": result.available_slots,
                "busy_times_count": result.busy_times_count,
                "user_availability": result.user_availability,
                "slots_generated": result.slots_generated,
            },
        )


class MatchesView(APIView):
    permission_classes = PROFILE_PERMISSIONS

    def get(self, request):
        profile = current_profile(request)
        query = MatchQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        stores = default_stores()
        matches = find_matches(
            profile.uid,
            profiles=stores.profiles,
            denials=stores.denials,
            limit=query.validated_data.get("limit"),
        )
        return success(
            "Matches found successfully" if matches else "No matches found",
            {
                "matches": [match.as_dict() for match in matches],
                "count": len(matches),
            },
        )


class MatchDenyView(APIView):
    permission_classes = PROFILE_PERMISSIONS

    def post(self, request):
        profile = current_profile(request)
        serializer = DenyMentorSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        stores = default_stores()
        denial = store_denial(
            profile.uid,
            serializer.validated_data["mentor_uid"],
            profiles=stores.profiles,
            denials=stores.denials,
            reason=serializer.validated_data.get("reason") or "user_rejection",
        )
        return success("Mentor denied successfully", DenialSerializer(denial).data)


class MentorProfileView(APIView):
    permission_classes = [IsAuthenticatedWithAppRole]

    def get(self, request, uid):
        stores = default_stores()
        return success("Mentor profile retrieved successfully", get_mentor_profile(uid, profiles=stores.profiles))


class BookTwoWaySessionView(APIView):
    permission_classes = PROFILE_PERMISSIONS

    def post(self, request):
        profile = current_profile(request)
        serializer = BookingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        stores = default_stores()
        result = book_two_way_session(
            BookingRequest(organizer_uid=profile.uid, **serializer.validated_data),
            profiles=stores.profiles,
            sessions=stores.sessions,
            calendar=google_calendar,
        )
        return success(
            "Session booked in both calendars successfully",
            result.as_dict(),
            status.HTTP_201_CREATED,
        )


class RateSessionView(APIView):
    permission_classes = PROFILE_PERMISSIONS

    def post(self, request):
        profile = current_profile(request)
        serializer = RateSessionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        stores = default_stores()
        result = submit_rating(
            rater_uid=profile.uid,
            session_id=serializer.validated_data["session_id"],
            mentor_uid=serializer.validated_data["mentor_uid"],
            rating=serializer.validated_data["rating"],
            profiles=stores.profiles,
            sessions=stores.sessions,
            ratings=stores.ratings,
        )
        return success("Rating submitted successfully", result.as_dict())


class SessionViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Session.objects.all().select_related("organizer", "participant").order_by("-start_time", "-id")
    serializer_class = SessionSerializer
    permission_classes = [IsAuthenticatedWithAppRole]

    def get_queryset(self):
        queryset = super().get_queryset()
        if user_role(self.request.user) != ROLE_ADMIN:
            profile = user_profile(self.request.user)
            if profile is None:
                return queryset.none()
            queryset = queryset.filter(Q(organizer=profile) | Q(participant=profile))
        status_value = self.request.query_params.get("status")
        if status_value:
            queryset = queryset.filter(status=status_value)
        return queryset
