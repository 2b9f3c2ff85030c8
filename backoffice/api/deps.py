"""
FastAPI Dependencies

Provides dependency injection for database sessions, authentication,
the acting user context and the contract service collaborators.

SECURITY NOTES:
- JWT payloads are never logged
- Tokens are issued by the platform auth service; this API only verifies them
"""

from typing import Annotated
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
import logging

from backoffice.database import get_db
from backoffice.config import Settings, get_settings
from backoffice.exceptions import ForbiddenError, UnauthorizedError
from backoffice.models.user import User
from backoffice.security.rbac import ActorContext
from backoffice.services.contract_lifecycle import ContractLifecycleManager
from backoffice.services.documents import DocxTemplateRenderer, HtmlDocxConverter, SupabaseStorage

logger = logging.getLogger(__name__)


# HTTP Bearer for JWT
security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token (used by tests and service-to-service calls)."""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> User:
    """
    Get current user from the Bearer JWT.

    SECURITY:
    - JWT payloads are NOT logged to prevent credential leakage
    - Failures never reveal whether the token or the user was the problem
    """
    credentials_exception = UnauthorizedError("Could not validate credentials")

    if not credentials:
        raise credentials_exception

    settings = get_settings()
    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        sub = payload.get("sub")
        if sub is None:
            raise credentials_exception
        user_id = int(sub)
    except JWTError:
        logger.warning("JWT validation failed")
        raise credentials_exception
    except ValueError:
        logger.warning("Invalid token format")
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise ForbiddenError("User account is disabled")

    logger.debug("User authenticated", extra={"user_id": user.id})
    return user


async def get_current_actor(
    current_user: Annotated[User, Depends(get_current_user)],
) -> ActorContext:
    """Explicit actor context handed to every contract operation."""
    return ActorContext.for_role(str(current_user.id), current_user.role)


# ---------------------------------------------------------------------------
# Collaborators (overridden in tests via app.dependency_overrides)
# ---------------------------------------------------------------------------


def get_template_renderer() -> DocxTemplateRenderer:
    return DocxTemplateRenderer(get_settings().CONTRACT_TEMPLATES_DIR)


def get_document_converter() -> HtmlDocxConverter:
    return HtmlDocxConverter()


def get_object_storage() -> SupabaseStorage:
    return SupabaseStorage.from_settings(get_settings())


def get_contract_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    renderer: Annotated[DocxTemplateRenderer, Depends(get_template_renderer)],
    converter: Annotated[HtmlDocxConverter, Depends(get_document_converter)],
    storage: Annotated[SupabaseStorage, Depends(get_object_storage)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ContractLifecycleManager:
    return ContractLifecycleManager(db, renderer, converter, storage, settings)


# Type aliases for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentActor = Annotated[ActorContext, Depends(get_current_actor)]
ContractService = Annotated[ContractLifecycleManager, Depends(get_contract_service)]
