from django.core.exceptions import ObjectDoesNotExist
from rest_framework.permissions import BasePermission


ROLE_ADMIN = "admin"
ROLE_STUDENT = "student"
ROLE_MENTOR = "mentor"
APP_ROLES = {ROLE_ADMIN, ROLE_STUDENT, ROLE_MENTOR}


def user_profile(user):
    if not user or not user.is_authenticated:
        return None
    try:
        return user.skillswap_profile
    except ObjectDoesNotExist:
        return None


def user_role(user):
    if not user or not user.is_authenticated:
        return None
    if user.is_superuser:
        return ROLE_ADMIN
    profile = user_profile(user)
    return profile.role if profile else None


class IsAuthenticatedWithAppRole(BasePermission):
    def has_permission(self, request, view):
        role = user_role(request.user)
        return bool(role in APP_ROLES)


class HasSkillSwapProfile(BasePermission):
    message = "A SkillSwap profile is required for this action."

    def has_permission(self, request, view):
        return user_profile(request.user) is not None


class IsAdminRole(BasePermission):
    def has_permission(self, request, view):
        return user_role(request.user) == ROLE_ADMIN
