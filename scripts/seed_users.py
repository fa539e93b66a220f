"""Seed approved development accounts, alternating male / female.

Usage: python -m scripts.seed_users [--count 20] [--prefix loadtest] [--password password123]
"""
import argparse
import asyncio
import random
import sys
sys.path.insert(0, ".")

from sqlalchemy import select
from unimatch.database import async_session_factory, engine
from unimatch.models.user import User
from unimatch.utils.security import hash_password


FIRST_NAMES = ["Aarav", "Diya", "Kabir", "Isha", "Rohan", "Meera", "Arjun", "Sana"]
COLLEGES = ["IIT Delhi", "BITS Pilani", "NIT Trichy", "IIIT Hyderabad"]
BRANCHES = ["CSE", "ECE", "Mechanical", "Civil", "Chemical"]


def seed_email(prefix: str, index: int) -> str:
    return f"{prefix}_{index}@unimatch.dev"


async def seed(count: int, prefix: str, password: str, admin: bool) -> int:
    password_hash = hash_password(password)
    created = 0
    async with async_session_factory() as session:
        for i in range(count):
            email = seed_email(prefix, i)
            existing = await session.execute(select(User).where(User.email == email))
            if existing.scalar_one_or_none() is not None:
                print(f"  {email} already exists, skipping.")
                continue
            session.add(User(
                email=email,
                password_hash=password_hash,
                first_name=random.choice(FIRST_NAMES),
                last_name=f"Seed{i}",
                gender="male" if i % 2 == 0 else "female",
                age=random.randint(18, 26),
                college=random.choice(COLLEGES),
                branch=random.choice(BRANCHES),
                graduation_year=str(random.randint(2026, 2030)),
                is_approved=True,
                is_admin=admin and i == 0,
            ))
            created += 1
            print(f"  Seeded {email}")
        await session.commit()
    await engine.dispose()
    print(f"Done seeding users ({created} new).")
    return created


def main():
    parser = argparse.ArgumentParser(description="Seed UniMatch development accounts")
    parser.add_argument("--count", type=int, default=20, help="Number of accounts")
    parser.add_argument("--prefix", type=str, default="loadtest", help="Email local-part prefix")
    parser.add_argument("--password", type=str, default="password123", help="Shared password")
    parser.add_argument("--admin", action="store_true", help="Make the first account an admin")
    args = parser.parse_args()

    asyncio.run(seed(args.count, args.prefix, args.password, args.admin))


if __name__ == "__main__":
    main()
