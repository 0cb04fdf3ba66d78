import os
import tempfile
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

os.environ["ENVIRONMENT"] = "development"
os.environ.setdefault("DATABASE_URL", "sqlite:///./storefront-test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-the-storefront-suite")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_storefront")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "storefront_key_secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "storefront_webhook_secret")

import storefront.models  # noqa: E402,F401
from storefront.core.security import hash_password  # noqa: E402
from storefront.db.base_class import Base  # noqa: E402
from storefront.db.session import get_db  # noqa: E402
from storefront.main import app  # noqa: E402
from storefront.models.product import Product, ProductVariant  # noqa: E402
from storefront.models.user import User, UserRole  # noqa: E402
from storefront.services import notification_service  # noqa: E402

PASSWORD = "StrongPass1"


class _QueuedTask:
    def __init__(self, task_id: str):
        self.id = task_id


class TaskRecorder:
    """Stands in for a Celery task's `.delay`, keeping the queued arguments."""

    def __init__(self, name: str):
        self.name = name
        self.calls = []
        self.fail_with = None

    def delay(self, *args):
        if self.fail_with is not None:
            raise self.fail_with
        self.calls.append(args)
        return _QueuedTask(f"{self.name}-{len(self.calls)}")


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    db_file = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    db_file.close()

    test_engine = create_engine(
        f"sqlite:///{db_file.name}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()
        os.unlink(db_file.name)


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def notifications(monkeypatch) -> dict:
    """Keep e-mail tasks off the broker; tests inspect what would have been queued."""
    recorders = {
        "placed": TaskRecorder("placed"),
        "admin": TaskRecorder("admin"),
        "status": TaskRecorder("status"),
    }
    monkeypatch.setattr(notification_service, "send_order_placed_email", recorders["placed"])
    monkeypatch.setattr(notification_service, "send_new_order_admin_email", recorders["admin"])
    monkeypatch.setattr(notification_service, "send_order_status_email", recorders["status"])
    return recorders


@pytest.fixture()
def make_variant(db_session: Session):
    counter = {"n": 0}

    def _make(
        stock: int = 10,
        *,
        name: str = None,
        base_price: float = 29.99,
        price: float = None,
        category: str = "watches",
        color_name: str = "Black",
        is_active: bool = True,
    ) -> ProductVariant:
        counter["n"] += 1
        product = Product(
            name=name or f"Test Product {counter['n']}",
            category=category,
            base_price=base_price,
            is_active=True,
        )
        db_session.add(product)
        db_session.flush()

        variant = ProductVariant(
            product_id=product.id,
            color_name=color_name,
            price=price,
            stock_quantity=stock,
            is_active=is_active,
        )
        db_session.add(variant)
        db_session.commit()
        db_session.refresh(variant)
        return variant

    return _make


@pytest.fixture()
def make_user(db_session: Session):
    def _make(email: str, role: UserRole = UserRole.CUSTOMER, phone: str = "01012345678") -> User:
        user = User(
            email=email,
            full_name="Test Customer",
            phone=phone,
            password_hash=hash_password(PASSWORD),
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def login(client: TestClient):
    def _login(email: str, password: str = PASSWORD) -> None:
        response = client.post(
            "/api/v1/auth/login",
            json={"email": email, "password": password},
        )
        assert response.status_code == 200

    return _login
