# Security module
from backoffice.security.rbac import (
    ActorContext,
    Permission,
    UserRole,
)

__all__ = [
    "ActorContext",
    "Permission",
    "UserRole",
]
