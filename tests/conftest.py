import os
import time

import jwt
import pytest

SUPABASE_URL = "https://farm.supabase.test"
JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"

os.environ.setdefault("PUBLIC_SUPABASE_URL", SUPABASE_URL)
os.environ.setdefault("SUPABASE_JWT_SECRET", JWT_SECRET)

from fastapi.testclient import TestClient

from agrilink.main import app
from agrilink.core.dependencies import get_db

from fake_supabase import FakeSupabase


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def alice(db):
    return db.add_user("Alice", "Mwangi", "alice@farm.test")


@pytest.fixture
def bob(db):
    return db.add_user("Bob", "Otieno", "bob@farm.test")


@pytest.fixture
def carol(db):
    return db.add_user("Carol", "Njeri", "carol@farm.test")


def make_token(user_id, expires_in=3600):
    now = int(time.time())
    return jwt.encode(
        {
            "sub": user_id,
            "email": f"{user_id}@farm.test",
            "iss": f"{os.environ['PUBLIC_SUPABASE_URL']}/auth/v1",
            "iat": now,
            "exp": now + expires_in,
        },
        os.environ["SUPABASE_JWT_SECRET"],
        algorithm="HS256",
    )


@pytest.fixture
def auth_headers():
    def headers(user_id):
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return headers


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
