from django.contrib import admin, messages
from django.contrib.auth import get_user_model
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import MentorDenial, Session, SessionRating, SkillPopularity, UserProfile

User = get_user_model()


class UserProfileInline(admin.StackedInline):
    model = UserProfile
    can_delete = False
    extra = 0
    max_num = 1
    exclude = ("calendar_access_token",)


class AppUserAdmin(DjangoUserAdmin):
    inlines = (UserProfileInline,)
    list_display = DjangoUserAdmin.list_display + ('profile_role',)
    actions = ('mark_as_admin_role',)

    @admin.display(description='Role')
    def profile_role(self, obj):
        return getattr(getattr(obj, 'skillswap_profile', None), 'role', '-')

    @admin.action(description='Set selected users role as admin')
    def mark_as_admin_role(self, request, queryset):
        updated_count = UserProfile.objects.filter(user__in=queryset).update(role='admin')
        self.message_user(
            request,
            f'{updated_count} user(s) updated with admin role.',
            level=messages.SUCCESS,
        )


try:
    admin.site.unregister(User)
except admin.sites.NotRegistered:
    pass
admin.site.register(User, AppUserAdmin)


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = (
        'uid',
        'name',
        'email',
        'role',
        'reputation_score',
        'rating_count',
        'calendar_synced',
        'created_at',
    )
    list_filter = ('role', 'calendar_synced')
    search_fields = ('uid', 'name', 'email')
    readonly_fields = ('uid', 'reputation_score', 'rating_count', 'total_rating_points', 'created_at', 'updated_at')
    exclude = ('calendar_access_token',)


@admin.register(Session)
class SessionAdmin(admin.ModelAdmin):
    list_display = (
        'id',
        'organizer',
        'participant',
        'skill_topic',
        'session_type',
        'start_time',
        'end_time',
        'status',
    )
    list_filter = ('status', 'session_type')
    search_fields = ('summary', 'skill_topic', 'organizer__email', 'participant__email')


@admin.register(SessionRating)
class SessionRatingAdmin(admin.ModelAdmin):
    list_display = ('session', 'mentor', 'rater', 'rating', 'created_at')
    list_filter = ('rating',)
    readonly_fields = ('session', 'mentor', 'rater', 'rating', 'created_at')


@admin.register(MentorDenial)
class MentorDenialAdmin(admin.ModelAdmin):
    list_display = ('learner', 'mentor', 'reason', 'denied_at')
    search_fields = ('learner__email', 'mentor__email')


@admin.register(SkillPopularity)
class SkillPopularityAdmin(admin.ModelAdmin):
    list_display = ('name', 'key', 'count', 'updated_at')
    search_fields = ('name', 'key')
    ordering = ('-count', 'key')
