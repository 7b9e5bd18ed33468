from typing import Callable, Dict

from fastapi.testclient import TestClient
import pytest

from studysphere.api.dependencies.database import get_db
from studysphere.auth import create_access_token
from studysphere.main import app


@pytest.fixture
def client(db):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def auth_headers() -> Callable[[str, str], Dict[str, str]]:
    def _headers(user_id: str, role: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}

    return _headers
