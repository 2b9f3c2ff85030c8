"""Contract lifecycle service.

Flow:
    validate form -> calculate values -> render draft HTML -> persist DRAFT
    -> save draft edits (any number of times)
    -> approve: HTML -> DOCX -> upload -> public URL -> conditional APPROVED write

Every operation receives an explicit ActorContext and returns a
ContractActionResult; collaborator and database failures are logged and
reported in the result, never raised to the caller, and never retried.

Writes after creation are conditional on ``status = 'DRAFT'`` and on the
version read at the start of the operation, so a concurrent approval or edit
turns into a conflict instead of a lost update. The approval upload key is
deterministic and uploaded with upsert, so re-running a failed approval is
safe. An approval that loses the race re-uploads the winner's document,
since its own upload has already replaced it.
"""

import asyncio
import json
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Callable, List, Mapping, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.config import Settings
from backoffice.core.sentry import capture_message
from backoffice.exceptions import (
    ContractError,
    ErrorCode,
    StorageError,
    VersionConflictError,
)
from backoffice.models.contract import Contract, ContractUnit
from backoffice.models.indicacao import Indicacao
from backoffice.schemas.contract import (
    AddressInput,
    ContractActionResult,
    ContractCalculationData,
    ContractForm,
    flatten_validation_errors,
)
from backoffice.security.rbac import ActorContext, Permission
from backoffice.services.contract_calculator import calculate_contract_values
from backoffice.services.contract_state import (
    ContractStatus,
    compute_expiration,
    ensure_editable,
    ensure_transition,
)
from backoffice.services.documents.docx_converter import DOCX_CONTENT_TYPE
from backoffice.utils.formatters import (
    format_cep,
    format_date_ptbr,
    format_decimal_ptbr,
    format_document,
    format_integer_ptbr,
    format_phone,
    number_to_words_ptbr,
)

logger = logging.getLogger(__name__)

# Pricing used when a lead's metadata does not carry its own
DEFAULT_PRICE_KWH = 0.95
DEFAULT_DISCOUNT_PERCENT = 20.0


def artifact_key(contract_id) -> str:
    """Storage key of the approved document; one per contract, overwritten on retry."""
    return f"contracts/{contract_id}_final.docx"


def _parse_uuid(value) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def _percent_label(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return format_decimal_ptbr(value, 2)


def _failure(
    message: str,
    error_code: ErrorCode,
    errors: Optional[dict] = None,
    **extra: Any,
) -> ContractActionResult:
    return ContractActionResult(success=False, message=message, error_code=error_code, errors=errors, **extra)


def build_template_context(
    form: ContractForm,
    calculation: ContractCalculationData,
    today: date,
) -> dict:
    """Map client fields and the calculation onto the template placeholders.

    Raises ValueError when the rental value is too large to write in full.
    """
    document = format_document(form.client_doc)
    address = form.address or AddressInput()
    cep = format_cep(address.zip_code) if address.zip_code else ""
    phone = format_phone(form.client_phone) if form.client_phone else ""
    email = form.client_email or ""
    price = format_decimal_ptbr(calculation.price_kwh)
    discount = _percent_label(form.discount_percent)
    cm_total = f"{calculation.consumption_avg_total:.0f}"
    rental_value = format_integer_ptbr(calculation.rental_value_total)
    today_label = format_date_ptbr(today)

    return {
        "cliente_nome": form.client_name,
        "cliente_doc": document,
        "cliente_endereco": form.full_address,
        "cliente_cidade": address.city or "",
        "cliente_estado": address.state or "",
        "cliente_cep": cep,
        "cliente_contato": form.client_contact or phone or email,
        "CM_total": cm_total,
        "preco_kwh": price,
        "preco_kwh_final": format_decimal_ptbr(calculation.price_kwh_final),
        "desconto_percent": discount,
        "valor_locacao_total": rental_value,
        "valor_locacao_extenso": number_to_words_ptbr(calculation.rental_value_total),
        "placas_total": calculation.panels_total,
        "data_hoje": today_label,
        "unidades": [
            {"nome": u.unit_name, "media": f"{u.consumption_avg_unit:.0f}"}
            for u in calculation.units
        ],
        # Uppercase aliases used by the signed templates
        "NOME": form.client_name,
        "CPF": document,
        "CNPJ": document,
        "RG": form.client_rg or "",
        "LOGRADOURO": address.street or "",
        "NÚMERO": address.number or "",
        "NÚMERO ENDEREÇO": address.number or "",
        "BAIRRO": address.district or "",
        "CIDADE": address.city or "",
        "Estado": address.state or "",
        "ESTADO": address.state or "",
        "CEP": cep,
        "EMAIL": email,
        "E-mail do Signatário": email,
        "TELEFONE": phone,
        "CM_TOTAL": cm_total,
        "PRECO_KWH": price,
        "DESCONTO_PERCENT": discount,
        "VALOR_LOCACAO_TOTAL": rental_value,
        "PLACAS_TOTAL": calculation.panels_total,
        "DATA_HOJE": today_label,
        "ANO_ATUAL": today.year,
    }


def _number(value) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number == number else None  # NaN


def _text(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def build_payload_from_indicacao(indicacao: Indicacao, metadata: Mapping[str, Any]) -> dict:
    """Translate a lead and its form metadata into a create-contract payload."""
    brand = (indicacao.marca or "rental").upper()
    person_type = (indicacao.tipo or "PF").upper()

    price = _number(metadata.get("precoKwh"))
    if not price or price <= 0:
        price = DEFAULT_PRICE_KWH

    discount = _number(metadata.get("desconto"))
    if discount is None:
        discount = DEFAULT_DISCOUNT_PERCENT

    readings = [n for n in (_number(c) for c in metadata.get("consumos") or []) if n is not None]
    if not any(r > 0 for r in readings):
        single = _number(metadata.get("consumoMedioPF")) or _number(metadata.get("consumoMedioKwh"))
        readings = [single] if single else []

    return {
        "type": f"{brand}_{person_type}",
        "brand": brand,
        "clientName": indicacao.nome,
        "clientDoc": indicacao.documento or "",
        "clientContact": indicacao.telefone or indicacao.email,
        "clientEmail": indicacao.email,
        "clientPhone": indicacao.telefone,
        "clientRg": _text(metadata.get("rg")),
        "address": {
            "street": _text(metadata.get("logradouro") or metadata.get("endereco")),
            "number": _text(metadata.get("numero")),
            "district": _text(metadata.get("bairro")),
            "city": _text(metadata.get("cidade") or indicacao.cidade),
            "state": _text(metadata.get("estado") or indicacao.estado),
            "zipCode": _text(metadata.get("cep")),
        },
        "priceKwh": price,
        "discountPercent": discount,
        "units": [
            {
                "name": metadata.get("codigoInstalacao") or "UC 1",
                "consumptions": readings,
            }
        ],
    }


class ContractLifecycleManager:
    """Creates, edits and approves contracts.

    Collaborators:
        renderer: ``render_html(template_name, context) -> str`` (sync)
        converter: ``convert(html) -> bytes`` (sync)
        storage: async ``upload``/``download`` and ``public_url``
    """

    def __init__(
        self,
        db: AsyncSession,
        renderer,
        converter,
        storage,
        settings: Settings,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.renderer = renderer
        self.converter = converter
        self.storage = storage
        self.settings = settings
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _load(self, contract_id) -> Optional[Contract]:
        contract_uuid = _parse_uuid(contract_id)
        if contract_uuid is None:
            return None
        result = await self.db.execute(
            select(Contract)
            .where(Contract.id == contract_uuid)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get(self, actor: ActorContext, contract_id) -> Optional[Contract]:
        """Contract visible to ``actor`` or None."""
        if not actor.has_permission(Permission.VIEW_CONTRACTS):
            return None
        contract = await self._load(contract_id)
        if contract is None or not actor.can_access_brand(contract.brand):
            return None
        return contract

    async def list_units(self, actor: ActorContext, contract_id) -> Optional[List[ContractUnit]]:
        contract = await self.get(actor, contract_id)
        if contract is None:
            return None
        result = await self.db.execute(
            select(ContractUnit)
            .where(ContractUnit.contract_id == contract.id)
            .order_by(ContractUnit.id)
        )
        return list(result.scalars().all())

    async def list_contracts(
        self,
        actor: ActorContext,
        status: Optional[str] = None,
        brand: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Contract], int]:
        """Contracts of the actor's brands, newest first."""
        if not actor.has_permission(Permission.VIEW_CONTRACTS):
            return [], 0

        brands = [b.value for b in actor.allowed_brands]
        if brand:
            brands = [b for b in brands if b == brand.upper()]
        if not brands:
            return [], 0

        query = select(Contract).where(Contract.brand.in_(brands))
        if status:
            query = query.where(Contract.status == status.upper())

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        offset = (page - 1) * page_size
        query = query.order_by(Contract.created_at.desc()).offset(offset).limit(page_size)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(self, actor: ActorContext, payload: Mapping[str, Any]) -> ContractActionResult:
        """Validate ``payload``, calculate, render the draft and persist it."""
        try:
            form = ContractForm.model_validate(payload)
        except ValidationError as e:
            return _failure("Dados inválidos", ErrorCode.VALIDATION_ERROR, errors=flatten_validation_errors(e))
        return await self._create_from_form(actor, form)

    async def _create_from_form(
        self,
        actor: ActorContext,
        form: ContractForm,
        indicacao_id: Optional[uuid.UUID] = None,
    ) -> ContractActionResult:
        if not actor.has_permission(Permission.CREATE_CONTRACTS):
            return _failure("Não autorizado", ErrorCode.FORBIDDEN)
        if not actor.can_access_brand(form.brand):
            return _failure(f"Sem acesso à marca {form.brand.value}.", ErrorCode.FORBIDDEN)

        try:
            calculation = calculate_contract_values(form.units, form.price_kwh, form.discount_fraction)
            context = build_template_context(form, calculation, self.clock().date())
        except ContractError as e:
            logger.warning("Contract values rejected for %s: %s", form.client_name, e.message)
            return _failure(e.message, e.error_code)
        except (ValueError, OverflowError) as e:
            logger.warning("Contract values rejected for %s: %s", form.client_name, e)
            return _failure(f"Valores fora do intervalo suportado: {e}", ErrorCode.VALIDATION_ERROR)

        template_name = form.type.template_name
        try:
            draft_html = await asyncio.to_thread(self.renderer.render_html, template_name, context)
        except ContractError as e:
            logger.error("Draft rendering failed (template %s): %s", template_name, e.message)
            return _failure(f"Erro: {e.message}", e.error_code)
        except Exception as e:
            logger.error("Draft rendering failed (template %s): %s", template_name, e)
            return _failure(f"Erro: {e}", ErrorCode.TEMPLATE_ERROR)

        contract = Contract(
            id=uuid.uuid4(),
            type=form.type.value,
            brand=form.brand.value,
            status=ContractStatus.DRAFT.value,
            client_data={
                "name": form.client_name,
                "doc": form.client_doc,
                "contact": form.client_contact,
                "address": form.full_address or None,
                "email": form.client_email,
                "phone": form.client_phone,
                "rg": form.client_rg,
                "address_details": form.address.model_dump() if form.address else None,
            },
            calculation_data=calculation.model_dump(mode="json"),
            html_content=draft_html,
            version=1,
            indicacao_id=indicacao_id,
            created_by=actor.actor_id,
            units=[
                ContractUnit(
                    unit_name=u.unit_name,
                    consumption_avg=u.consumption_avg_unit,
                    consumptions=u.consumptions_kwh,
                )
                for u in calculation.units
            ],
        )
        contract_id = contract.id

        # Contract and units commit together or not at all
        self.db.add(contract)
        try:
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error("Failed to persist contract %s: %s", contract_id, type(e).__name__)
            return _failure("Erro ao salvar contrato.", ErrorCode.DATABASE_ERROR)

        logger.info(
            "Contract %s created as DRAFT by %s (%s, %d unit(s), rental value %d)",
            contract_id,
            actor.actor_id,
            form.type.value,
            len(calculation.units),
            calculation.rental_value_total,
        )
        return ContractActionResult(
            success=True,
            message="Contrato criado com sucesso!",
            contract_id=contract_id,
            status=ContractStatus.DRAFT.value,
            version=1,
        )

    async def _load_indicacao_metadata(self, indicacao: Indicacao) -> dict:
        key = f"{indicacao.user_id}/{indicacao.id}/metadata.json"
        try:
            raw = await self.storage.download(self.settings.INDICACOES_BUCKET, key)
        except StorageError as e:
            logger.warning("Lead metadata unavailable for %s: %s", indicacao.id, e.message)
            return {}

        if raw is None:
            logger.warning("Metadata not found for lead %s, using lead columns", indicacao.id)
            return {}
        try:
            metadata = json.loads(raw)
        except ValueError:
            logger.warning("Metadata for lead %s is not valid JSON, using lead columns", indicacao.id)
            return {}
        return metadata if isinstance(metadata, dict) else {}

    async def create_from_indicacao(self, actor: ActorContext, indicacao_id) -> ContractActionResult:
        """Create a DRAFT contract from a stored lead."""
        indicacao_uuid = _parse_uuid(indicacao_id)
        indicacao = None
        if indicacao_uuid is not None:
            result = await self.db.execute(select(Indicacao).where(Indicacao.id == indicacao_uuid))
            indicacao = result.scalar_one_or_none()
        if indicacao is None:
            return _failure("Indicação não encontrada.", ErrorCode.NOT_FOUND)

        if not (indicacao.documento or "").strip():
            logger.info("Lead %s has no CPF/CNPJ, contract not generated", indicacao.id)
            return _failure(
                "Indicação sem CPF/CNPJ cadastrado. Informe o documento do cliente antes de gerar o contrato.",
                ErrorCode.VALIDATION_ERROR,
                errors={"clientDoc": ["Documento (CPF/CNPJ) ausente na indicação."]},
            )

        metadata = await self._load_indicacao_metadata(indicacao)
        payload = build_payload_from_indicacao(indicacao, metadata)
        try:
            form = ContractForm.model_validate(payload)
        except ValidationError as e:
            return _failure("Dados inválidos", ErrorCode.VALIDATION_ERROR, errors=flatten_validation_errors(e))

        return await self._create_from_form(actor, form, indicacao_id=indicacao.id)

    # ------------------------------------------------------------------
    # Draft edits
    # ------------------------------------------------------------------

    async def save_draft(
        self,
        actor: ActorContext,
        contract_id,
        html_content: str,
        expected_version: Optional[int] = None,
    ) -> ContractActionResult:
        """Replace the draft HTML. Calculation data is never touched."""
        if not actor.has_permission(Permission.EDIT_CONTRACT_DRAFTS):
            return _failure("Não autorizado", ErrorCode.FORBIDDEN)

        contract = await self.get(actor, contract_id)
        if contract is None:
            return _failure("Contrato não encontrado.", ErrorCode.NOT_FOUND)

        current_id, current_status, current_version = contract.id, contract.status, contract.version
        try:
            ensure_editable(current_status)
            if expected_version is not None and expected_version != current_version:
                raise VersionConflictError(expected_version, current_version)
        except ContractError as e:
            logger.info("Draft save rejected for %s: %s", current_id, e.message)
            return _failure(
                e.message, e.error_code,
                contract_id=current_id, status=current_status, version=current_version,
            )

        stmt = (
            update(Contract)
            .where(
                Contract.id == current_id,
                Contract.status == ContractStatus.DRAFT.value,
                Contract.version == current_version,
            )
            .values(html_content=html_content, version=Contract.version + 1)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            if result.rowcount != 1:
                await self.db.rollback()
                logger.warning("Draft save lost a race on contract %s (version %s)", current_id, current_version)
                return _failure(
                    "O contrato foi alterado por outra pessoa. Recarregue e tente novamente.",
                    ErrorCode.CONFLICT,
                    contract_id=current_id,
                )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error("Erro ao salvar rascunho %s: %s", current_id, type(e).__name__)
            return _failure("Erro ao salvar.", ErrorCode.DATABASE_ERROR, contract_id=current_id)

        await self.db.refresh(contract)
        return ContractActionResult(
            success=True,
            message="Rascunho salvo.",
            contract_id=current_id,
            status=contract.status,
            version=contract.version,
        )

    # ------------------------------------------------------------------
    # Approval
    # ------------------------------------------------------------------

    def _report_orphan_artifact(self, contract_id, key: str, reason: str) -> None:
        logger.error(
            "Contract %s approval incomplete (%s): artifact %s/%s uploaded but record still DRAFT",
            contract_id,
            reason,
            self.settings.DOCUMENTS_BUCKET,
            key,
        )
        capture_message(
            "Contract approval left an orphaned artifact",
            level="error",
            context={"contract_id": str(contract_id), "artifact_key": key, "reason": reason},
        )

    async def _restore_approved_artifact(self, contract_id, bucket: str, key: str) -> bool:
        """Re-upload the document of an approval that won the race.

        The losing approval has already overwritten ``key`` with its own
        DOCX, so the stored artifact must be rebuilt from the approved
        record. Returns False when the record is not APPROVED (the upload
        is then an orphan).
        """
        try:
            winner = await self._load(contract_id)
            if winner is None or winner.status != ContractStatus.APPROVED.value:
                return False
            approved_html = winner.html_content or ""
            docx_bytes = await asyncio.to_thread(self.converter.convert, approved_html)
            await self.storage.upload(bucket, key, docx_bytes, DOCX_CONTENT_TYPE, upsert=True)
        except Exception as e:
            logger.error("Could not restore approved artifact %s/%s for %s: %s", bucket, key, contract_id, e)
            capture_message(
                "Approved contract artifact overwritten by a losing approval",
                level="error",
                context={"contract_id": str(contract_id), "artifact_key": key, "reason": type(e).__name__},
            )
            return True

        logger.warning("Contract %s was approved concurrently; artifact %s restored", contract_id, key)
        return True

    async def approve(
        self,
        actor: ActorContext,
        contract_id,
        html_content: str,
        expected_version: Optional[int] = None,
    ) -> ContractActionResult:
        """Freeze the contract: DOCX artifact, public URL, APPROVED, expiry date."""
        if not actor.has_permission(Permission.APPROVE_CONTRACTS):
            return _failure("Não autorizado a aprovar contratos.", ErrorCode.FORBIDDEN)

        contract = await self.get(actor, contract_id)
        if contract is None:
            return _failure("Contrato não encontrado.", ErrorCode.NOT_FOUND)

        current_id, current_status, current_version = contract.id, contract.status, contract.version
        try:
            ensure_transition(current_status, ContractStatus.APPROVED)
            if expected_version is not None and expected_version != current_version:
                raise VersionConflictError(expected_version, current_version)
        except ContractError as e:
            logger.info("Approval rejected for %s: %s", current_id, e.message)
            return _failure(
                e.message, e.error_code,
                contract_id=current_id, status=current_status, version=current_version,
            )

        # 1. HTML -> DOCX
        try:
            docx_bytes = await asyncio.to_thread(self.converter.convert, html_content)
        except Exception as e:
            logger.error("HTML to DOCX error for %s: %s", current_id, e)
            return _failure("Erro na conversão do documento.", ErrorCode.CONVERSION_ERROR, contract_id=current_id)

        # 2-3. Upload (overwrite allowed) and resolve the public URL
        key = artifact_key(current_id)
        bucket = self.settings.DOCUMENTS_BUCKET
        try:
            await self.storage.upload(bucket, key, docx_bytes, DOCX_CONTENT_TYPE, upsert=True)
            docx_url = self.storage.public_url(bucket, key)
        except Exception as e:
            logger.error("Storage upload error for %s: %s", current_id, e)
            return _failure("Erro ao salvar arquivo final.", ErrorCode.STORAGE_ERROR, contract_id=current_id)

        # 4. Single conditional write; zero rows means someone else got there first
        approved_at = self.clock()
        stmt = (
            update(Contract)
            .where(
                Contract.id == current_id,
                Contract.status == ContractStatus.DRAFT.value,
                Contract.version == current_version,
            )
            .values(
                status=ContractStatus.APPROVED.value,
                html_content=html_content,
                docx_url=docx_url,
                approved_by=actor.actor_id,
                approved_at=approved_at,
                expires_at=compute_expiration(approved_at, self.settings.CONTRACT_VALIDITY_DAYS),
                version=Contract.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            if result.rowcount != 1:
                await self.db.rollback()
                if not await self._restore_approved_artifact(current_id, bucket, key):
                    self._report_orphan_artifact(current_id, key, "concurrent update")
                return _failure(
                    "O contrato já foi aprovado ou alterado por outra pessoa.",
                    ErrorCode.CONFLICT,
                    contract_id=current_id,
                )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            self._report_orphan_artifact(current_id, key, type(e).__name__)
            return _failure(
                "Erro ao finalizar contrato no banco.",
                ErrorCode.DATABASE_ERROR,
                contract_id=current_id,
                status=current_status,
            )

        await self.db.refresh(contract)
        logger.info("Contract %s approved by %s, expires %s", current_id, actor.actor_id, contract.expires_at)
        return ContractActionResult(
            success=True,
            message="Contrato aprovado.",
            contract_id=current_id,
            status=contract.status,
            version=contract.version,
            docx_url=contract.docx_url,
        )
