"""
Test factories for generating realistic test data.

Uses factory_boy for declarative test data generation.
"""

from .user import UserFactory, AdminUserFactory
from .contract import (
    UnitPayloadFactory,
    ContractPayloadFactory,
    DorataContractPayloadFactory,
    IndicacaoFactory,
)

__all__ = [
    "UserFactory",
    "AdminUserFactory",
    # Contracts
    "UnitPayloadFactory",
    "ContractPayloadFactory",
    "DorataContractPayloadFactory",
    "IndicacaoFactory",
]
