"""Pytest configuration: session-less API access and an in-memory Firestore."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

_REPO_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ROOT = _REPO_ROOT / "apps" / "backend"
for _path in (_REPO_ROOT, _BACKEND_ROOT):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))

# Disable session authentication by default so API tests can call endpoints without
# provisioning cookies. Individual tests can override this via monkeypatch when needed.
os.environ.setdefault("DISABLE_SESSION_AUTH", "true")
# 起動時バリデーションを満たす 32 文字以上のテスト用シークレット。
os.environ.setdefault("SESSION_SECRET_KEY", "S9kD2fH5jL8pQ1tV4yX7zB0cN3mR6wA9")
# モジュール import 時に生成される Firestore クライアントを実環境へ向けない。
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("FIRESTORE_EMULATOR_HOST", "localhost:8080")
os.environ.setdefault("FIRESTORE_PROJECT_ID", "test-project")
# bcrypt のコストを下げてテストを高速化する。
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")

from tests.firestore_fakes import FakeFirestoreClient  # noqa: E402

_STORE_MODULES = (
    "parlons.store",
    "parlons.auth",
    "parlons.routers.auth",
    "parlons.routers.vocabulary",
    "parlons.routers.review",
    "parlons.routers.grammar",
    "parlons.routers.stories",
    "parlons.routers.fun_phrases",
)


@pytest.fixture()
def fake_client() -> FakeFirestoreClient:
    return FakeFirestoreClient()


@pytest.fixture()
def app_store(fake_client):
    from parlons.store.firestore_store import AppFirestoreStore

    return AppFirestoreStore(client=fake_client)


@pytest.fixture()
def patched_store(app_store, monkeypatch):
    """`store` を参照する全モジュールをフェイク Firestore 版に差し替える。"""

    import importlib

    for module_name in _STORE_MODULES:
        module = importlib.import_module(module_name)
        monkeypatch.setattr(module, "store", app_store)
    return app_store


@pytest.fixture()
def client(patched_store, monkeypatch):
    """TestClient acting as the local learner (session auth disabled)."""

    from fastapi.testclient import TestClient

    from parlons.config import settings
    from parlons.main import create_app

    monkeypatch.setattr(settings, "disable_session_auth", True)
    return TestClient(create_app())


@pytest.fixture()
def auth_client(patched_store, monkeypatch):
    """TestClient with session cookie authentication enforced."""

    from fastapi.testclient import TestClient

    from parlons.config import settings
    from parlons.main import create_app

    monkeypatch.setattr(settings, "disable_session_auth", False)
    monkeypatch.setattr(settings, "session_cookie_secure", False)
    return TestClient(create_app())
