import os

# must be set before the app modules read them
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["STRICT_ORDER_TRANSITIONS"] = "true"
os.environ.pop("IMAGE_HOST_URL", None)
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)

import pytest
from fastapi.testclient import TestClient

import auth
import models
from database import Base, SessionLocal, engine, get_db
from main import app, get_image_host


class FakeImageHost:
    """Records calls; set fail=True to make destroy blow up."""

    def __init__(self, fail=False):
        self.fail = fail
        self.destroyed = []
        self.uploaded = []

    def upload(self, filename, content, content_type="application/octet-stream"):
        self.uploaded.append((filename, content, content_type))
        return {"id": f"img-{len(self.uploaded)}", "url": f"https://img.test/{filename}"}

    def destroy(self, image_id):
        if self.fail:
            raise RuntimeError("image host down")
        self.destroyed.append(image_id)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def image_host():
    return FakeImageHost()


@pytest.fixture
def failing_image_host():
    return FakeImageHost(fail=True)


@pytest.fixture
def client(db, image_host):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_image_host] = lambda: image_host
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(role, email=None, name=None, password=None):
        user = models.User(
            name=name or role,
            email=email or f"{role.lower()}@cafe.test",
            role=role,
            password=auth.get_password_hash(password) if password else None,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def make_menu_item(db):
    def _make(name, price=10.0, category="Food", is_available=True, image_id=None, image_url=None):
        item = models.MenuItem(
            name=name,
            description=f"{name} description",
            price=price,
            category=category,
            image_id=image_id,
            image_url=image_url,
            is_available=is_available,
        )
        db.add(item)
        db.commit()
        db.refresh(item)
        return item
    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {auth.create_user_token(user)}"}
    return _headers
