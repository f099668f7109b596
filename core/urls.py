from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .api_views import (
    AdminStatsView,
    BookTwoWaySessionView,
    CalendarConnectView,
    CalendarSyncView,
    LogoutView,
    MatchDenyView,
    MatchesView,
    MentorProfileView,
    ProfileDetailView,
    ProfileMeView,
    ProfileUpdateView,
    RateSessionView,
    RegisterView,
    SessionViewSet,
)

router = DefaultRouter()
router.register(r"sessions", SessionViewSet, basename="session")


urlpatterns = [
    path("auth/register/", RegisterView.as_view(), name="auth-register"),
    path("auth/logout/", LogoutView.as_view(), name="auth-logout"),
    path("profile/me/", ProfileMeView.as_view(), name="profile-me"),
    path("profile/update/", ProfileUpdateView.as_view(), name="profile-update"),
    path("profile/admin/stats/", AdminStatsView.as_view(), name="profile-admin-stats"),
    path("profile/calendar/connect/", CalendarConnectView.as_view(), name="calendar-connect"),
    path("profile/calendar/sync/", CalendarSyncView.as_view(), name="calendar-sync"),
    path("profile/session/book-two-way/", BookTwoWaySessionView.as_view(), name="book-two-way-session"),
    path("profile/rate-session/", RateSessionView.as_view(), name="rate-session"),
    path("profile/<str:uid>/", ProfileDetailView.as_view(), name="profile-detail"),
    path("matches/", MatchesView.as_view(), name="matches"),
    path("matches/deny/", MatchDenyView.as_view(), name="matches-deny"),
    path("matches/mentors/<str:uid>/", MentorProfileView.as_view(), name="matches-mentor-profile"),
    path("", include(router.urls)),
]
