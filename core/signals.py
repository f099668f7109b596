import logging

from django.db.models import F
from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver
from django.utils import timezone

from .models import SkillPopularity, UserProfile

logger = logging.getLogger(__name__)


def skill_keys(skills):
    keys = {}
    for skill in skills or []:
        if not isinstance(skill, str) or not skill.strip():
            continue
        keys.setdefault(skill.strip().lower(), skill.strip())
    return keys


def increment_skills(skills):
    for key, name in skill_keys(skills).items():
        popularity, created = SkillPopularity.objects.get_or_create(
            key=key, defaults={"name": name, "count": 1}
        )
        if not created:
            SkillPopularity.objects.filter(pk=popularity.pk).update(
                count=F("count") + 1, updated_at=timezone.now()
            )


def decrement_skills(skills):
    keys = list(skill_keys(skills))
    if not keys:
        return
    SkillPopularity.objects.filter(key__in=keys, count__gt=0).update(
        count=F("count") - 1, updated_at=timezone.now()
    )


@receiver(pre_save, sender=UserProfile)
def remember_offered_skills(sender, instance: UserProfile, **kwargs):
    if instance.pk is None:
        instance._previous_skills_offered = []
        return
    instance._previous_skills_offered = (
        UserProfile.objects.filter(pk=instance.pk).values_list("skills_offered", flat=True).first()
        or []
    )


@receiver(post_save, sender=UserProfile)
def update_skill_popularity(sender, instance: UserProfile, created: bool, **kwargs):
    previous = skill_keys(getattr(instance, "_previous_skills_offered", []))
    current = skill_keys(instance.skills_offered)
    added = [current[key] for key in current if key not in previous]
    removed = [previous[key] for key in previous if key not in current]
    if added:
        increment_skills(added)
    if removed:
        decrement_skills(removed)
    if added or removed:
        logger.info(
            "Skill popularity updated for %s: +%s -%s", instance.uid, len(added), len(removed)
        )
    instance._previous_skills_offered = list(instance.skills_offered or [])


@receiver(post_delete, sender=UserProfile)
def release_skill_popularity(sender, instance: UserProfile, **kwargs):
    decrement_skills(instance.skills_offered)
