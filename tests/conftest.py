"""
Venue Gallery Backend — Test Configuration (conftest.py)
=========================================================

What:  Shared pytest fixtures for the entire test suite.
How:   An in-memory SQLite database (aiosqlite + StaticPool) stands in for
       PostgreSQL; an in-memory asset host stands in for Cloudinary.
Who:   Used by all test files in the tests/ directory.

Fixture Hierarchy (all function-scoped, fresh database per test):
    db_engine ──▶ session_factory ──▶ db_session ──▶ storage
                                                       │
    asset_host (FakeAssetHost) ────────────────────────┼──▶ category_service ──▶ image_service
                                                       │
    session_factory + asset_host ──▶ test_client (HTTPX AsyncClient, dependency overrides)

    sample_image_bytes / png_bytes: tiny image payloads for upload tests
"""

import base64
import os

# Settings are read at import time: configure the environment first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["ENVIRONMENT"] = "test"
os.environ["CLOUDINARY_CLOUD_NAME"] = "demo"
os.environ["CLOUDINARY_API_KEY"] = "test-key-not-real"
os.environ["CLOUDINARY_API_SECRET"] = "test-secret-not-real"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"
os.environ["UPLOAD_RATE_LIMIT_REQUESTS"] = "1000"

from typing import Dict, List, Optional, Set  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.database import Base, json_dumps  # noqa: E402
from app.exceptions import AssetHostError  # noqa: E402
from app.services.asset_host import AssetHostGateway, UploadedAsset  # noqa: E402
from app.services.category_service import CategoryService  # noqa: E402
from app.services.image_service import ImageService  # noqa: E402
from app.services.storage_gateway import StorageGateway  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# In-memory asset host
# ══════════════════════════════════════════════════════════════════════════

class FakeAssetHost(AssetHostGateway):
    """
    Cloudinary stand-in that keeps assets in a dict.

    Only the network calls are replaced; delete_many, folder_for and
    build_url run the real gateway code.

    Knobs:
        fail_upload:  every upload raises AssetHostError
        fail_upload_after: uploads beyond this many successful ones raise AssetHostError
        fail_delete:  identifiers whose deletion raises AssetHostError
        fail_folder_delete: delete_folder raises AssetHostError
    """

    def __init__(self):
        super().__init__(
            cloud_name="demo",
            api_key="test-key-not-real",
            api_secret="test-secret-not-real",
            root_folder="gallery",
        )
        self.assets: Dict[str, str] = {}
        self.uploads: List[dict] = []
        self.deleted: List[str] = []
        self.deleted_folders: List[str] = []
        self.fail_upload = False
        self.fail_upload_after: Optional[int] = None
        self.fail_delete: Set[str] = set()
        self.fail_folder_delete = False
        self._counter = 0

    async def upload(self, content, folder, filename: Optional[str] = None, transformation=None):
        self.uploads.append({"folder": folder, "size": len(content), "transformation": transformation})
        if self.fail_upload or (
            self.fail_upload_after is not None and self._counter >= self.fail_upload_after
        ):
            raise AssetHostError(message="Failed to upload image to the image hosting service")
        self._counter += 1
        identifier = f"{folder}/asset{self._counter:04d}"
        self.assets[identifier] = folder
        return UploadedAsset(
            identifier=identifier,
            url=f"https://res.cloudinary.com/demo/image/upload/{identifier}.jpg",
            bytes=len(content),
            format="jpg",
            width=800,
            height=600,
        )

    async def delete(self, identifier):
        if identifier in self.fail_delete:
            raise AssetHostError(
                message="Failed to delete image from the image hosting service",
                context={"identifier": identifier},
            )
        self.assets.pop(identifier, None)
        self.deleted.append(identifier)

    async def delete_folder(self, folder):
        if self.fail_folder_delete:
            raise AssetHostError(message="Failed to delete folder from the image hosting service")
        self.deleted_folders.append(folder)


# ══════════════════════════════════════════════════════════════════════════
# Database fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database with both tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        json_serializer=json_dumps,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage(db_session):
    return StorageGateway(db_session)


@pytest.fixture
def asset_host():
    return FakeAssetHost()


@pytest.fixture
def category_service(storage, asset_host):
    return CategoryService(storage, asset_host)


@pytest.fixture
def image_service(storage, asset_host, category_service):
    return ImageService(storage, asset_host, category_service)


# ══════════════════════════════════════════════════════════════════════════
# Upload payloads
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def sample_image_bytes():
    """
    Minimal JPEG bytes: SOI marker + JFIF header + EOI marker.

    Not a real photograph; the fake asset host never decodes it.
    """
    return (
        b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"
        b"\xff\xd9"
    )


@pytest.fixture
def png_bytes():
    """A complete 1x1 transparent PNG (signature, IHDR, IDAT, IEND)."""
    return base64.b64decode(
        "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
    )


# ══════════════════════════════════════════════════════════════════════════
# HTTP client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory, asset_host):
    """
    HTTPX AsyncClient talking to the FastAPI app through ASGITransport.

    The request session and the asset host are swapped for the test
    database and the FakeAssetHost; commit / rollback behave as in
    app.database.get_db_session.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from app.database import get_db_session
    from app.dependencies import get_asset_host
    from app.main import app

    async def override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_asset_host] = lambda: asset_host

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
