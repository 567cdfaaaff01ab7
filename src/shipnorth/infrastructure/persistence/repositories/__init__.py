"""Repository implementations."""

from shipnorth.infrastructure.persistence.repositories.in_memory import (
    InMemoryUserRepository,
)
from shipnorth.infrastructure.persistence.repositories.resilient import (
    ResilientUserRepository,
)
from shipnorth.infrastructure.persistence.repositories.user_repo import (
    PostgresUserRepository,
)


__all__ = [
    "InMemoryUserRepository",
    "PostgresUserRepository",
    "ResilientUserRepository",
]
