"""Contract models: generated legal documents and their consumption units."""

from sqlalchemy import Column, String, DateTime, Text, Integer, Float, JSON, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from backoffice.database import Base


class Contract(Base):
    """Solar rental contract generated from a calculation snapshot."""

    __tablename__ = "contracts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)

    # RENTAL_PF, RENTAL_PJ, DORATA_PF, DORATA_PJ
    type = Column(String(20), nullable=False)
    brand = Column(String(20), nullable=False, index=True)  # RENTAL, DORATA

    # DRAFT, APPROVED, EXPIRED
    status = Column(String(20), nullable=False, default="DRAFT", index=True)

    # Snapshots (never normalized, never recomputed)
    client_data = Column(JSON, nullable=False)
    # Example: {"name": "...", "doc": "...", "contact": "...", "address": "..."}
    calculation_data = Column(JSON, nullable=False)

    # Document
    html_content = Column(Text, nullable=True)
    docx_url = Column(String(500), nullable=True)

    # Bumped on every mutating write, compared before each write
    version = Column(Integer, nullable=False, default=1)

    # Lead this contract was generated from, if any
    indicacao_id = Column(UUID(as_uuid=True), nullable=True, index=True)

    # Audit
    created_by = Column(String(100), nullable=True)
    approved_by = Column(String(100), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    units = relationship(
        "ContractUnit",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="ContractUnit.id",
    )

    def __repr__(self):
        return f"<Contract {self.id} {self.type} {self.status}>"

    @property
    def client_name(self):
        return (self.client_data or {}).get("name")


class ContractUnit(Base):
    """Consumption unit (UC) snapshot belonging to a contract."""

    __tablename__ = "contract_units"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contract_id = Column(
        UUID(as_uuid=True),
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    unit_name = Column(String(255), nullable=False)
    consumption_avg = Column(Float, nullable=False, default=0.0)
    consumptions = Column(JSON, nullable=False)  # monthly kWh readings as submitted

    contract = relationship("Contract", back_populates="units")

    def __repr__(self):
        return f"<ContractUnit {self.unit_name} avg={self.consumption_avg}>"
