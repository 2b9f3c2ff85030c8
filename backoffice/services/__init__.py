# Services module
from backoffice.services.contract_lifecycle import ContractLifecycleManager

__all__ = [
    "ContractLifecycleManager",
]
