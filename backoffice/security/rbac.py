"""
Role-Based Access Control (RBAC) Module

Maps back-office roles to permissions and to the brands (tenants) whose
contracts they may see. Services receive an explicit ActorContext instead of
looking the user up themselves.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Set

from backoffice.schemas.contract import Brand


class UserRole(str, Enum):
    """Back-office roles."""
    VENDEDOR_EXTERNO = "vendedor_externo"
    VENDEDOR_INTERNO = "vendedor_interno"
    SUPERVISOR = "supervisor"
    ADM_MESTRE = "adm_mestre"
    ADM_DORATA = "adm_dorata"


class Permission(str, Enum):
    """Fine-grained permissions."""
    VIEW_CONTRACTS = "view_contracts"
    CREATE_CONTRACTS = "create_contracts"
    EDIT_CONTRACT_DRAFTS = "edit_contract_drafts"
    APPROVE_CONTRACTS = "approve_contracts"


_SELLER_PERMISSIONS = {
    Permission.VIEW_CONTRACTS,
    Permission.CREATE_CONTRACTS,
    Permission.EDIT_CONTRACT_DRAFTS,
}

ROLE_PERMISSIONS: dict[UserRole, Set[Permission]] = {
    UserRole.VENDEDOR_EXTERNO: set(_SELLER_PERMISSIONS),
    UserRole.VENDEDOR_INTERNO: set(_SELLER_PERMISSIONS),
    UserRole.SUPERVISOR: set(Permission),
    UserRole.ADM_DORATA: set(Permission),
    UserRole.ADM_MESTRE: set(Permission),
}

ROLE_BRANDS: dict[UserRole, FrozenSet[Brand]] = {
    UserRole.VENDEDOR_EXTERNO: frozenset({Brand.RENTAL, Brand.DORATA}),
    UserRole.VENDEDOR_INTERNO: frozenset({Brand.RENTAL}),
    UserRole.SUPERVISOR: frozenset({Brand.RENTAL}),
    UserRole.ADM_DORATA: frozenset({Brand.DORATA, Brand.RENTAL}),
    UserRole.ADM_MESTRE: frozenset({Brand.DORATA, Brand.RENTAL}),
}


def parse_role(value) -> UserRole:
    """Unknown or missing roles fall back to the least privileged seller."""
    try:
        return UserRole(value)
    except ValueError:
        return UserRole.VENDEDOR_EXTERNO


def get_allowed_brands(role: UserRole) -> FrozenSet[Brand]:
    return ROLE_BRANDS.get(role, frozenset({Brand.RENTAL}))


@dataclass(frozen=True)
class ActorContext:
    """Who is acting, passed explicitly into every contract operation."""

    actor_id: str
    role: UserRole
    allowed_brands: FrozenSet[Brand] = field(default_factory=frozenset)

    @classmethod
    def for_role(cls, actor_id: str, role) -> "ActorContext":
        parsed = parse_role(role)
        return cls(actor_id=str(actor_id), role=parsed, allowed_brands=get_allowed_brands(parsed))

    @property
    def permissions(self) -> Set[Permission]:
        return ROLE_PERMISSIONS.get(self.role, set())

    def has_permission(self, permission: Permission) -> bool:
        return permission in self.permissions

    def can_access_brand(self, brand) -> bool:
        try:
            return Brand(str(getattr(brand, "value", brand)).upper()) in self.allowed_brands
        except ValueError:
            return False

