"""Seed the database with demo accounts and a class, and print their tokens.

There is no password login; the printed bearer tokens are how the demo
accounts authenticate against the API.

Usage: python scripts/seed_data.py
"""

import asyncio
import sys
from pathlib import Path

# Ensure project root is on sys.path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import select

from edutrack.config import settings
from edutrack.database import async_session, init_db
from edutrack.models.classroom import Classroom
from edutrack.services.auth import create_access_token, create_user, get_user_by_email
from edutrack.services.classrooms import create_classroom, enroll


SEED_USERS = [
    {"name": "Demo Teacher", "email": "teacher@example.com", "role": "teacher"},
    {
        "name": "Demo Student",
        "email": "student@example.com",
        "role": "student",
        "parent_email": "parent@example.com",
    },
    {"name": "Demo Parent", "email": "parent@example.com", "role": "parent"},
]

SEED_CLASS = {"name": "Handwriting Basics", "subject": "English"}


async def seed() -> None:
    # Ensure data directory exists
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)

    # Create tables
    await init_db()
    print("Database tables created.")

    async with async_session() as session:
        users = {}
        for user_data in SEED_USERS:
            # Idempotent on email
            user = await get_user_by_email(session, user_data["email"])
            if user is None:
                user = await create_user(session, **user_data)
                print(f"  Inserted: {user.role} {user.email}")
            else:
                print(f"  Exists:   {user.role} {user.email}")
            users[user.role] = user

        teacher, student = users["teacher"], users["student"]
        result = await session.execute(
            select(Classroom).where(
                Classroom.teacher_id == teacher.id, Classroom.name == SEED_CLASS["name"]
            )
        )
        classroom = result.scalar_one_or_none()
        if classroom is None:
            classroom = await create_classroom(session, teacher, **SEED_CLASS)
            print(f"  Inserted: class {classroom.name} ({classroom.class_code})")
        if not classroom.has_student(student.id):
            enroll(classroom, student)
            await session.commit()

        print("\nBearer tokens:")
        for role, user in users.items():
            print(f"  {role:<8} {create_access_token(user.id)}")

    print("Seed data complete.")


if __name__ == "__main__":
    asyncio.run(seed())
