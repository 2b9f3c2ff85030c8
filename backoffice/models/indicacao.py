"""Indicação (sales lead) model, the seed of a contract."""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid

from backoffice.database import Base


class Indicacao(Base):
    """Lead submitted by a seller. Extra form data lives in storage as metadata.json."""

    __tablename__ = "indicacoes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(String(100), nullable=False, index=True)  # owner (seller)

    nome = Column(String(255), nullable=False)
    documento = Column(String(20), nullable=True)  # CPF or CNPJ
    email = Column(String(255), nullable=True)
    telefone = Column(String(30), nullable=True)
    cidade = Column(String(120), nullable=True)
    estado = Column(String(2), nullable=True)

    marca = Column(String(20), nullable=False, default="rental")  # rental, dorata
    tipo = Column(String(2), nullable=False, default="PF")  # PF, PJ
    status = Column(String(30), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Indicacao {self.id} {self.nome}>"
