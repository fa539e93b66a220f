"""
UniMatch — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from unimatch.models.user import User
from unimatch.models.interaction import Interaction, InteractionKind
from unimatch.models.match import Match, Swipe
from unimatch.models.message import Message

__all__ = [
    "User",
    "Interaction",
    "InteractionKind",
    "Match",
    "Swipe",
    "Message",
]
