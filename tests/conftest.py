import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice.main import app
from backoffice.config import get_settings
from backoffice.database import Base, get_db
from backoffice.api.deps import (
    create_access_token,
    get_document_converter,
    get_object_storage,
    get_template_renderer,
)
from backoffice.models.user import User
from backoffice.security.rbac import ActorContext
from backoffice.services.contract_lifecycle import ContractLifecycleManager
from tests.factories import AdminUserFactory, UserFactory

# In-memory SQLite shared by every session of a test
TEST_DATABASE_URL = "sqlite+aiosqlite://"


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


class FakeRenderer:
    """Template renderer returning predictable HTML."""

    def __init__(self):
        self.calls = []
        self.error = None

    def render_html(self, template_name, context):
        self.calls.append((template_name, dict(context)))
        if self.error:
            raise self.error
        return (
            f"<h1>{template_name}</h1>"
            f"<p>{context['cliente_nome']}</p>"
            f"<p>R$ {context['valor_locacao_total']}</p>"
        )


class FakeConverter:
    def __init__(self):
        self.calls = []
        self.error = None

    def convert(self, html):
        self.calls.append(html)
        if self.error:
            raise self.error
        return b"PK\x03\x04" + html.encode("utf-8")


class FakeStorage:
    """Object storage kept in a dict."""

    base_url = "https://storage.test"

    def __init__(self):
        self.objects = {}
        self.uploads = []
        self.upload_error = None
        self.before_upload = None

    async def upload(self, bucket, key, content, content_type, upsert=True):
        if self.before_upload:
            await self.before_upload()
        if self.upload_error:
            raise self.upload_error
        self.uploads.append((bucket, key, content_type, upsert))
        self.objects[(bucket, key)] = content

    def public_url(self, bucket, key):
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{key}"

    async def download(self, bucket, key):
        return self.objects.get((bucket, key))


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def converter():
    return FakeConverter()


@pytest.fixture
def storage():
    return FakeStorage()


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_db():
    """Create test database and tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def contract_service(test_db, renderer, converter, storage):
    return ContractLifecycleManager(test_db, renderer, converter, storage, get_settings())


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------


@pytest.fixture
def seller():
    """External seller: both brands, cannot approve."""
    return ActorContext.for_role("seller-1", "vendedor_externo")


@pytest.fixture
def internal_seller():
    """Internal seller: RENTAL only."""
    return ActorContext.for_role("seller-2", "vendedor_interno")


@pytest.fixture
def supervisor():
    return ActorContext.for_role("supervisor-1", "supervisor")


@pytest.fixture
def admin():
    return ActorContext.for_role("admin-1", "adm_mestre")


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


async def _create_user(db: AsyncSession, data: dict) -> User:
    user = User(**data)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def _auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "email": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def seller_user(test_db: AsyncSession):
    return await _create_user(test_db, UserFactory(email="seller@example.com"))


@pytest_asyncio.fixture
async def admin_user(test_db: AsyncSession):
    return await _create_user(test_db, AdminUserFactory(email="admin@example.com"))


@pytest.fixture
def seller_headers(seller_user: User):
    return _auth_headers(seller_user)


@pytest.fixture
def admin_headers(admin_user: User):
    return _auth_headers(admin_user)


@pytest_asyncio.fixture
async def client(test_db: AsyncSession, renderer, converter, storage):
    """Create test client with overridden database and collaborators."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_template_renderer] = lambda: renderer
    app.dependency_overrides[get_document_converter] = lambda: converter
    app.dependency_overrides[get_object_storage] = lambda: storage

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
