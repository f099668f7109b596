import random
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.utils import timezone

from core.models import Session, UserProfile
from core.ratings import submit_rating
from core.stores import default_stores


class Command(BaseCommand):
    help = "Seed sample students and mentors with skills, availability, sessions and ratings."

    def add_arguments(self, parser):
        parser.add_argument(
            "--count",
            type=int,
            default=10,
            help="Number of students and mentors to create (default: 10).",
        )

    def handle(self, *args, **options):
        count = options["count"]
        User = get_user_model()
        random.seed(42)

        test_domain = "skillswap.local"
        UserProfile.objects.filter(email__endswith=f"@{test_domain}").delete()
        User.objects.filter(email__endswith=f"@{test_domain}").delete()

        first_names = ["Priya", "Rahul", "Ananya", "Karthik", "Meera", "Arjun", "Nila", "Vikram"]
        last_names = ["Sharma", "Iyer", "Patel", "Rao", "Menon", "Gupta", "Nair", "Singh"]
        skills = [
            "Python",
            "JavaScript",
            "Excel",
            "Guitar",
            "Public Speaking",
            "Photography",
            "Spanish",
            "Data Analysis",
            "Figma",
            "Cooking",
        ]
        day_pool = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
        time_pool = ["09:00-11:00", "12:00-13:30", "14:00-16:00", "17:00-19:00", "19:30-21:00"]

        def build_profile(email, role):
            user = User.objects.create_user(username=email, email=email, password="password123")
            offered = random.sample(skills, k=random.randint(2, 4)) if role == "mentor" else []
            wanted = random.sample(skills, k=random.randint(1, 3))
            return UserProfile.objects.create(
                user=user,
                name=f"{random.choice(first_names)} {random.choice(last_names)}",
                email=email,
                role=role,
                skills_offered=offered,
                skills_wanted=wanted,
                availability={
                    "days": sorted(random.sample(day_pool, k=3), key=day_pool.index),
                    "times": sorted(random.sample(time_pool, k=2)),
                },
            )

        students = [build_profile(f"student{i+1}@{test_domain}", "student") for i in range(count)]
        mentors = [build_profile(f"mentor{i+1}@{test_domain}", "mentor") for i in range(count)]

        stores = default_stores()
        now = timezone.now()
        sessions_created = 0
        for index, student in enumerate(students):
            mentor = random.choice(mentors)
            start = now - timedelta(days=random.randint(1, 20), hours=index)
            shared = [skill for skill in student.skills_wanted if skill in mentor.skills_offered]
            session = Session.objects.create(
                organizer=student,
                participant=mentor,
                summary=f"{(shared or mentor.skills_offered)[0]} session",
                start_time=start,
                end_time=start + timedelta(hours=1),
                skill_topic=(shared or mentor.skills_offered)[0],
                session_type="learning",
                status=Session.STATUS_CONFIRMED,
            )
            sessions_created += 1
            submit_rating(
                rater_uid=student.uid,
                session_id=session.id,
                mentor_uid=mentor.uid,
                rating=random.randint(3, 5),
                profiles=stores.profiles,
                sessions=stores.sessions,
                ratings=stores.ratings,
            )

        self.stdout.write(
            self.style.SUCCESS(
                f"Seed data created successfully: {len(students)} students, "
                f"{len(mentors)} mentors, {sessions_created} rated sessions."
            )
        )
