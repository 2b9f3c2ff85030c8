"""Contracts API - rental contract drafts and approval.

Features:
- Calculation preview (no persistence)
- Create DRAFT contracts from the form or from a stored lead
- Save edited draft HTML
- Approve: final DOCX, public URL, 120-day expiry
"""

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse
from typing import List, Optional
import logging

from backoffice.api.deps import ContractService, CurrentActor
from backoffice.exceptions import (
    ERROR_CODE_STATUS,
    BackofficeException,
    CalculationError,
    NotFoundError,
)
from backoffice.schemas.contract import (
    ApprovalRequest,
    CalculationPreviewRequest,
    ContractActionResult,
    ContractCalculationData,
    ContractListItem,
    ContractListResponse,
    ContractResponse,
    ContractUnitResponse,
    DraftSaveRequest,
)
from backoffice.services.contract_calculator import calculate_contract_values

logger = logging.getLogger(__name__)
router = APIRouter()


def _result_response(result: ContractActionResult, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    """Serialize an action result with the HTTP status matching its outcome."""
    if result.success:
        status_code = success_status
    else:
        status_code = ERROR_CODE_STATUS.get(result.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


@router.post("/preview", response_model=ContractCalculationData)
async def preview_calculation(request: CalculationPreviewRequest, actor: CurrentActor):
    """Run the calculator without saving anything."""
    try:
        return calculate_contract_values(request.units, request.price_kwh, request.discount_percent / 100)
    except CalculationError as e:
        raise BackofficeException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code=e.error_code,
            detail=e.message,
        )


@router.post(
    "",
    response_model=ContractActionResult,
    status_code=status.HTTP_201_CREATED,
)
async def create_contract(payload: dict, actor: CurrentActor, service: ContractService):
    """Create a DRAFT contract.

    The body is validated by the service so field errors come back inside the
    action result instead of a generic 422 problem document.
    """
    result = await service.create(actor, payload)
    return _result_response(result, status.HTTP_201_CREATED)


@router.post(
    "/from-indicacao/{indicacao_id}",
    response_model=ContractActionResult,
    status_code=status.HTTP_201_CREATED,
)
async def create_contract_from_indicacao(indicacao_id: str, actor: CurrentActor, service: ContractService):
    """Create a DRAFT contract pre-filled from a lead."""
    result = await service.create_from_indicacao(actor, indicacao_id)
    return _result_response(result, status.HTTP_201_CREATED)


@router.get("", response_model=ContractListResponse)
async def list_contracts(
    actor: CurrentActor,
    service: ContractService,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    brand: Optional[str] = Query(None),
):
    """List contracts of the brands the user can see."""
    contracts, total = await service.list_contracts(actor, status=status, brand=brand, page=page, page_size=page_size)
    items = [
        ContractListItem(
            id=c.id,
            type=c.type,
            brand=c.brand,
            status=c.status,
            client_name=c.client_name,
            rental_value_total=(c.calculation_data or {}).get("rental_value_total"),
            version=c.version,
            expires_at=c.expires_at,
            created_at=c.created_at,
        )
        for c in contracts
    ]
    return ContractListResponse(items=items, total=total, page=page, page_size=page_size)


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(contract_id: str, actor: CurrentActor, service: ContractService):
    contract = await service.get(actor, contract_id)
    if contract is None:
        raise NotFoundError("Contract", contract_id)
    return ContractResponse.model_validate(contract)


@router.get("/{contract_id}/units", response_model=List[ContractUnitResponse])
async def list_contract_units(contract_id: str, actor: CurrentActor, service: ContractService):
    units = await service.list_units(actor, contract_id)
    if units is None:
        raise NotFoundError("Contract", contract_id)
    return [ContractUnitResponse.model_validate(u) for u in units]


@router.put("/{contract_id}/draft", response_model=ContractActionResult)
async def save_contract_draft(
    contract_id: str,
    request: DraftSaveRequest,
    actor: CurrentActor,
    service: ContractService,
):
    """Save edited HTML. Only DRAFT contracts accept edits."""
    result = await service.save_draft(actor, contract_id, request.html_content, request.expected_version)
    return _result_response(result)


@router.post("/{contract_id}/approve", response_model=ContractActionResult)
async def approve_contract(
    contract_id: str,
    request: ApprovalRequest,
    actor: CurrentActor,
    service: ContractService,
):
    """Approve a DRAFT: generate and upload the final DOCX, then freeze the contract."""
    result = await service.approve(actor, contract_id, request.html_content, request.expected_version)
    if not result.success:
        logger.warning("Approval of %s failed: %s", contract_id, result.message)
    return _result_response(result)
