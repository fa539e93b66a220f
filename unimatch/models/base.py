"""
UniMatch — Column helpers shared by the ORM models.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String

# UUIDs are stored as text so that ids compare lexicographically the same
# way in the database and in Python.
ID_TYPE = String(36)


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
