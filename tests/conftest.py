from collections.abc import AsyncIterator
from io import BytesIO

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import Database
from app.main import create_app
from app.services.images import ImagePipeline, UploadedImage
from app.services.ledger import EquipmentLedger
from app.services.storage import BlobStore


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        UPLOAD_DIR=str(tmp_path / "uploads"),
        DEBUG=False,
    )


@pytest_asyncio.fixture
async def database(test_settings: Settings) -> AsyncIterator[Database]:
    database = Database(test_settings.DATABASE_URL)
    await database.connect()
    await database.create_all()
    yield database
    await database.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncIterator[AsyncSession]:
    async with database.session_factory() as session:
        yield session


@pytest.fixture
def blob_store(test_settings: Settings) -> BlobStore:
    store = BlobStore(test_settings.UPLOAD_DIR)
    store.ensure_dirs()
    return store


@pytest.fixture
def ledger(db_session: AsyncSession, blob_store: BlobStore) -> EquipmentLedger:
    return EquipmentLedger(db_session, blob_store, ImagePipeline())


@pytest_asyncio.fixture
async def client(test_settings: Settings) -> AsyncIterator[AsyncClient]:
    app = create_app(test_settings)
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


def _image_bytes(fmt: str = "PNG", size: tuple = (640, 480), color: str = "red") -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def image_bytes():
    return _image_bytes


@pytest.fixture
def upload():
    def _upload(name: str = "photo.png", content_type: str = "image/png", **kwargs) -> UploadedImage:
        fmt = {"image/png": "PNG", "image/jpeg": "JPEG", "image/webp": "WEBP"}.get(content_type, "PNG")
        return UploadedImage(filename=name, content_type=content_type, data=_image_bytes(fmt, **kwargs))

    return _upload
