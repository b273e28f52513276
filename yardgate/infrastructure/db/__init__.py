"""Database infrastructure package."""

from yardgate.infrastructure.db.models import Base, ContainerDB, ContainerFileDB
from yardgate.infrastructure.db.repository import ContainerRepository, RecordNotFoundError
from yardgate.infrastructure.db.session import (
    close_db,
    get_session,
    init_db,
)

__all__ = [
    # Models
    "Base",
    "ContainerDB",
    "ContainerFileDB",
    # Repositories
    "ContainerRepository",
    "RecordNotFoundError",
    # Session
    "get_session",
    "init_db",
    "close_db",
]
