import os
import tempfile

os.environ.setdefault("AUTH_SECRET", "test-secret")
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("OTP_ENV", "development")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/authgate_test")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="authgate-logs-"))

import httpx
import pytest
import pytest_asyncio
from beanie import init_beanie
from mongomock_motor import AsyncMongoMockClient

from authgate.config import get_settings
from authgate.constants import Role
from authgate.models import DOCUMENT_MODELS, User
from authgate.security import hash_password


@pytest_asyncio.fixture(autouse=True)
async def db():
    client = AsyncMongoMockClient()
    database = client["authgate_test"]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    yield database


@pytest.fixture
def settings():
    return get_settings()


@pytest_asyncio.fixture
async def client():
    from authgate.main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


@pytest.fixture
def make_user():
    async def factory(
        mobile_number="9876543210",
        *,
        name="Test User",
        email=None,
        role=Role.USER,
        password=None,
        is_active=True,
    ) -> User:
        user = User(
            name=name,
            email=email,
            mobile_number=mobile_number,
            role=role,
            password_hash=hash_password(password) if password else None,
            is_active=is_active,
        )
        await user.insert()
        return user

    return factory


@pytest.fixture
def auth_headers():
    from authgate.services.auth_service import issue_session

    def build(user: User) -> dict:
        return {"Authorization": f"Bearer {issue_session(user).access_token}"}

    return build
