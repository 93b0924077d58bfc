import os
import tempfile

os.environ.setdefault("FINANCE_DATA_DIR", os.path.join(tempfile.gettempdir(), "finance-tests"))
os.environ.setdefault("FINANCE_DATABASE_URL", "sqlite://")
os.environ.setdefault("FINANCE_RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("FINANCE_RAZORPAY_KEY_SECRET", "test_key_secret")
os.environ.setdefault("FINANCE_RAZORPAY_WEBHOOK_SECRET", "test_webhook_secret")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from auth_tokens import issue_token  # noqa: E402
from database import Base, get_db, install_sqlite_pragmas  # noqa: E402
from main import app, get_email_sender, get_profile_cache  # noqa: E402
from models import UserProfile  # noqa: E402
from notifications import EmailSender  # noqa: E402


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    install_sqlite_pragmas(eng)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def make_user(session):
    def _make(email: str = "user@example.com", is_admin: bool = False) -> UserProfile:
        user = UserProfile(email=email, is_admin=is_admin, provider="google")
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture()
def auth_headers():
    def _headers(user: UserProfile) -> dict[str, str]:
        token = issue_token(user.id, user.email, user.provider)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_sender] = lambda: EmailSender(host="", sender="")
    get_profile_cache.cache_clear()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
