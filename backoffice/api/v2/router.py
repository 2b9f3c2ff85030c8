from fastapi import APIRouter
from backoffice.api.v2 import contracts

api_router = APIRouter()

# Include all v2 routers
api_router.include_router(contracts.router, prefix="/contracts", tags=["contracts"])
