"""Shared fixtures: an in-memory app, an HTTP client and sample images."""
import cv2
import numpy as np
import pytest
from fastapi import HTTPException, Request
from httpx import ASGITransport, AsyncClient

from task_api.core.auth import CurrentUser, get_current_user
from task_api.core.config import Settings
from task_api.core.database import init_db
from task_api.main import create_app


def token_user(request: Request) -> CurrentUser:
    """Stand-in for the Auth Service: ``Bearer user-<id>`` authenticates as <id>."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme != "Bearer" or not token.startswith("user-"):
        raise HTTPException(status_code=401, detail="Not authenticated")
    user_id = int(token[len("user-"):])
    return CurrentUser(user_id=user_id, email=f"user{user_id}@example.com", username=f"user{user_id}")


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="sqlite://", auth_service_url="http://auth.test")


@pytest.fixture
def app(settings):
    application = create_app(settings)
    init_db(application.state.engine)
    application.dependency_overrides[get_current_user] = token_user
    yield application
    application.state.engine.dispose()


@pytest.fixture
async def client(app) -> AsyncClient:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def alice() -> dict:
    return {"Authorization": "Bearer user-1"}


@pytest.fixture
def bob() -> dict:
    return {"Authorization": "Bearer user-2"}


@pytest.fixture
def create_task(client, alice):
    """Create a task through the API and return its JSON body."""
    async def _create(description: str = "buy milk", headers: dict = None, **fields) -> dict:
        response = await client.post(
            "/tasks",
            json={"description": description, **fields},
            headers=headers or alice
        )
        assert response.status_code == 201, response.text
        return response.json()
    return _create


def _encode(extension: str, channels: int = 3) -> bytes:
    image = np.zeros((12, 20, channels), dtype=np.uint8)
    image[:, :10] = 255
    ok, encoded = cv2.imencode(extension, image)
    assert ok
    return encoded.tobytes()


@pytest.fixture
def png_bytes() -> bytes:
    return _encode(".png")


@pytest.fixture
def rgba_png_bytes() -> bytes:
    return _encode(".png", channels=4)


@pytest.fixture
def jpeg_bytes() -> bytes:
    return _encode(".jpg")
