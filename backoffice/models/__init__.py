from backoffice.models.user import User
from backoffice.models.contract import Contract, ContractUnit
from backoffice.models.indicacao import Indicacao

__all__ = [
    "User",
    "Contract",
    "ContractUnit",
    "Indicacao",
]
