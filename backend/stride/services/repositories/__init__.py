"""Repository layer - data access abstraction.

Repositories handle all database queries, providing a clean interface
for services. Services should use repositories for data access rather
than directly querying SQLAlchemy models.

Dependency direction: Services -> Repositories -> Models
"""

from .exceptions import DuplicateError, NotFoundError, RepositoryError
from .mfa_repository import MfaRepository
from .session_repository import SessionRepository
from .user_repository import UserRepository

__all__ = [
    "DuplicateError",
    "MfaRepository",
    "NotFoundError",
    "RepositoryError",
    "SessionRepository",
    "UserRepository",
]
