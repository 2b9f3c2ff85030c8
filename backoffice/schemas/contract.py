"""Contract schemas: form payloads, calculation snapshot and API responses."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    FiniteFloat,
    ValidationError,
    model_validator,
)

from backoffice.exceptions import ErrorCode

# SQLAlchemy UUID columns return uuid.UUID; responses expose strings
UUIDStr = Annotated[str, BeforeValidator(lambda v: str(v) if not isinstance(v, str) else v)]

# Upper bounds for form values (R$ per kWh, kWh per month)
MAX_PRICE_KWH = 100.0
MAX_MONTHLY_KWH = 10_000_000.0

MonthlyReading = Annotated[FiniteFloat, Field(le=MAX_MONTHLY_KWH)]


class ContractType(str, Enum):
    RENTAL_PF = "RENTAL_PF"
    RENTAL_PJ = "RENTAL_PJ"
    DORATA_PF = "DORATA_PF"
    DORATA_PJ = "DORATA_PJ"

    @property
    def template_name(self) -> str:
        """Template file stem, e.g. ``rental_pf``."""
        return self.value.lower()


class Brand(str, Enum):
    RENTAL = "RENTAL"
    DORATA = "DORATA"


# ========================
# Input payloads
# ========================


class UnitInput(BaseModel):
    """One consumption unit (UC) as submitted by the form."""

    name: str
    consumptions: List[MonthlyReading] = Field(default_factory=list)


class AddressInput(BaseModel):
    """Structured client address; every part is optional."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    street: Optional[str] = None
    number: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = Field(None, alias="zipCode")

    def one_line(self) -> str:
        parts = [self.street, self.number, self.district, self.city, self.state, self.zip_code]
        return ", ".join(p for p in parts if p)


class ContractForm(BaseModel):
    """Create-contract payload. ``discountPercent`` is a 0-100 UI value."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    type: ContractType
    brand: Brand
    client_name: str = Field(..., min_length=1, alias="clientName")
    client_doc: str = Field(..., min_length=1, alias="clientDoc")
    client_contact: Optional[str] = Field(None, alias="clientContact")
    client_address: Optional[str] = Field(None, alias="clientAddress")
    client_email: Optional[str] = Field(None, alias="clientEmail")
    client_phone: Optional[str] = Field(None, alias="clientPhone")
    client_rg: Optional[str] = Field(None, alias="clientRg")
    address: Optional[AddressInput] = None
    price_kwh: FiniteFloat = Field(..., gt=0, le=MAX_PRICE_KWH, alias="priceKwh")
    discount_percent: FiniteFloat = Field(..., ge=0, le=100, alias="discountPercent")
    units: List[UnitInput] = Field(..., min_length=1)

    @model_validator(mode="after")
    def type_matches_brand(self) -> "ContractForm":
        if not self.type.value.startswith(f"{self.brand.value}_"):
            raise ValueError(f"Tipo {self.type.value} não pertence à marca {self.brand.value}")
        return self

    @property
    def full_address(self) -> str:
        if self.client_address:
            return self.client_address
        return self.address.one_line() if self.address else ""

    @property
    def discount_fraction(self) -> float:
        return self.discount_percent / 100


class CalculationPreviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    price_kwh: FiniteFloat = Field(..., gt=0, le=MAX_PRICE_KWH, alias="priceKwh")
    discount_percent: FiniteFloat = Field(..., ge=0, le=100, alias="discountPercent")
    units: List[UnitInput] = Field(..., min_length=1)


class DraftSaveRequest(BaseModel):
    html_content: str
    expected_version: Optional[int] = Field(None, ge=1)


class ApprovalRequest(BaseModel):
    html_content: str
    expected_version: Optional[int] = Field(None, ge=1)


def flatten_validation_errors(exc: ValidationError) -> Dict[str, List[str]]:
    """Collapse pydantic errors into ``{field_path: [messages]}``."""
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"]) or "form"
        errors.setdefault(field, []).append(error["msg"])
    return errors


# ========================
# Calculation snapshot
# ========================


class UnitCalculation(BaseModel):
    model_config = ConfigDict(frozen=True)

    unit_name: str
    consumptions_kwh: List[float]
    consumption_avg_unit: float
    valid_months: int
    # False when no month had a positive reading (average is then 0)
    has_valid_readings: bool


class ContractCalculationData(BaseModel):
    model_config = ConfigDict(frozen=True)

    units: List[UnitCalculation]
    consumption_avg_total: float
    price_kwh: float
    discount_percent: float  # fraction, 0.20 for 20%
    price_kwh_final: float
    rental_value_total: int
    panels_total: int


# ========================
# Responses
# ========================


class ContractUnitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    unit_name: str
    consumption_avg: float
    consumptions: List[float]


class ContractResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUIDStr
    type: str
    brand: str
    status: str
    client_data: dict
    calculation_data: dict
    html_content: Optional[str] = None
    docx_url: Optional[str] = None
    version: int
    indicacao_id: Optional[UUIDStr] = None
    created_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ContractListItem(BaseModel):
    id: UUIDStr
    type: str
    brand: str
    status: str
    client_name: Optional[str] = None
    rental_value_total: Optional[int] = None
    version: int
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ContractListResponse(BaseModel):
    items: List[ContractListItem]
    total: int
    page: int
    page_size: int


class ContractActionResult(BaseModel):
    """Outcome of a mutating contract operation; failures never raise."""

    success: bool
    message: str
    errors: Optional[Dict[str, List[str]]] = None
    error_code: Optional[ErrorCode] = None
    contract_id: Optional[UUIDStr] = None
    status: Optional[str] = None
    version: Optional[int] = None
    docx_url: Optional[str] = None
