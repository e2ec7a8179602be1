# backend/tests/conftest.py
"""
Pytest configuration for the ParkBook backend.

Every test gets its own file-backed SQLite database under ``tmp_path`` so that
multi-threaded tests get independent connections with real write locking.
"""

from datetime import datetime, timedelta
from decimal import Decimal
import hashlib
import hmac
import json
from typing import Any, Dict, Iterator

import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from parkbook import models  # noqa: F401  (registers tables)
from parkbook.core.config import settings
from parkbook.core.enums import RoleName
from parkbook.database import Base, build_engine
from parkbook.domain.time_range import utc_now
from parkbook.models.parking_lot import ParkingLot
from parkbook.principal import Actor
from parkbook.services.booking_service import BookingService
from parkbook.services.parking_lot_service import ParkingLotService

TEST_WEBHOOK_SECRET = "sk_test_parkbook_webhooks"

COMPANY_ID = "company_harbor_parking"
OTHER_COMPANY_ID = "company_city_garages"
ALICE_ID = "user_alice"
BOB_ID = "user_bob"


# ============================================================================
# Settings
# ============================================================================


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """No backoff sleeps and a known webhook secret in every test."""
    monkeypatch.setattr(settings, "allocation_retry_base_delay", 0.0)
    monkeypatch.setattr(settings, "payment_webhook_secret", SecretStr(TEST_WEBHOOK_SECRET))


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def engine(tmp_path) -> Iterator[Engine]:
    test_engine = build_engine(f"sqlite:///{tmp_path / 'parkbook_test.db'}", timeout_seconds=5)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ============================================================================
# Actors, lots and times
# ============================================================================


@pytest.fixture
def company() -> Actor:
    return Actor(id=COMPANY_ID, role=RoleName.COMPANY)


@pytest.fixture
def other_company() -> Actor:
    return Actor(id=OTHER_COMPANY_ID, role=RoleName.COMPANY)


@pytest.fixture
def alice() -> Actor:
    return Actor(id=ALICE_ID)


@pytest.fixture
def bob() -> Actor:
    return Actor(id=BOB_ID)


@pytest.fixture
def make_lot(db: Session, company: Actor):
    """Factory for lots owned by ``company`` (or another owner)."""

    def _make_lot(
        total_spots: int = 3,
        hourly_rate: Decimal = Decimal("2.50"),
        name: str = "Harbor Street Garage",
        owner: Actor = company,
    ) -> ParkingLot:
        return ParkingLotService(db).create_lot(
            owner,
            name=name,
            location="12 Harbor Street",
            total_spots=total_spots,
            hourly_rate=hourly_rate,
        )

    return _make_lot


@pytest.fixture
def lot(make_lot) -> ParkingLot:
    return make_lot()


@pytest.fixture
def tomorrow_9am() -> datetime:
    """09:00 UTC tomorrow; far enough ahead that bookings are always upcoming."""
    return (utc_now() + timedelta(days=1)).replace(hour=9, minute=0, second=0, microsecond=0)


@pytest.fixture
def booking_service(db: Session) -> BookingService:
    return BookingService(db)


# ============================================================================
# HTTP
# ============================================================================


@pytest.fixture
def client(session_factory: sessionmaker) -> Iterator[TestClient]:
    """TestClient whose requests use the per-test database. Lifespan is not run."""
    from parkbook.api.dependencies.database import get_db
    from parkbook.main import app

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


def _actor_headers(actor: Actor) -> Dict[str, str]:
    return {"X-Actor-Id": actor.id, "X-Actor-Role": actor.role.value}


def _signed_webhook(payload: Dict[str, Any], secret: str = TEST_WEBHOOK_SECRET) -> Dict[str, Any]:
    body = json.dumps(payload).encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), body, hashlib.sha512).hexdigest()
    return {
        "content": body,
        "headers": {"x-paystack-signature": signature, "Content-Type": "application/json"},
    }


@pytest.fixture
def actor_headers():
    """Identity headers as forwarded by the upstream auth middleware."""
    return _actor_headers


@pytest.fixture
def signed_webhook():
    """Request kwargs for a webhook whose signature covers the exact bytes sent."""
    return _signed_webhook
