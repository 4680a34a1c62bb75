"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio
from tortoise import Tortoise

from billink.core.actors import Actor, Role
from billink.core.models import Customer, CustomerStatus
from billink.services.container import Services, build_services


@pytest_asyncio.fixture(scope="function", autouse=True)
async def db_session():
    """
    Provides a clean in-memory SQLite database for each test function.
    """
    await Tortoise.init(
        db_url="sqlite://:memory:",
        modules={"models": ["billink.core.models"]},
    )
    await Tortoise.generate_schemas()

    yield

    await Tortoise.close_connections()


class RecordingSender:
    """Notification sender that keeps every message instead of sending it."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    async def send(self, recipient_phone: str, text: str) -> None:
        self.sent.append((recipient_phone, text))


class FailingSender:
    """Notification sender whose gateway is always down."""

    async def send(self, recipient_phone: str, text: str) -> None:
        raise ConnectionError("SMS gateway unreachable")


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def services(sender: RecordingSender) -> Services:
    """Provides the full service graph wired to real repositories."""
    return build_services(sender=sender)


@pytest.fixture
def admin() -> Actor:
    return Actor(id="1001", role=Role.ADMIN, source_address="10.0.0.1")


@pytest.fixture
def cashier() -> Actor:
    return Actor(id="2001", role=Role.CASHIER)


@pytest.fixture
def encoder() -> Actor:
    return Actor(id="3001", role=Role.ENCODER)


@pytest.fixture
def make_customer():
    """Factory creating active customers with unique meter numbers."""
    counter = 0

    async def _make(
        birthdate: date | None = None,
        phone_number: str | None = "639171234567",
        credit_limit: Decimal | None = None,
    ) -> Customer:
        nonlocal counter
        counter += 1
        return await Customer.create(
            first_name="Juan",
            last_name=f"Dela Cruz {counter}",
            meter_number=f"MTR-{counter:04d}",
            phone_number=phone_number,
            birthdate=birthdate,
            status=CustomerStatus.ACTIVE,
            credit_limit=credit_limit,
        )

    return _make


@pytest.fixture
def failing_services() -> Services:
    """Service graph whose SMS gateway rejects every message."""
    return build_services(sender=FailingSender())
