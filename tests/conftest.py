"""
Pytest configuration and shared fixtures for LicenseKeeper tests.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from licensekeeper.licensing.authority import LicenseAuthority
from licensekeeper.licensing.errors import AuthorityError
from licensekeeper.licensing.leadership import InstanceRole
from licensekeeper.licensing.license_service import set_license_service
from licensekeeper.licensing.settings import RenewalSettings
from licensekeeper.licensing.snapshot import EntitlementGrant
from licensekeeper.licensing.store import EntitlementStore

TEST_TOKEN_SECRET = "test-management-token-secret-0123456789abcdef"


def make_grant(
    features: Optional[dict] = None,
    quotas: Optional[dict] = None,
    plan_name: str = "Enterprise",
    consumer_id: str = "consumer-123",
    certificate: Optional[str] = None,
    valid_days: int = 30,
) -> EntitlementGrant:
    """Build a grant as the authority would return it."""
    now = datetime.now(timezone.utc)
    return EntitlementGrant(
        boolean_features=features if features is not None else {"feat:sharing": True},
        numeric_quotas=quotas if quotas is not None else {"quota:users": 10},
        plan_name=plan_name,
        valid_from=now,
        valid_to=now + timedelta(days=valid_days),
        consumer_id=consumer_id,
        certificate=certificate,
    )


class FakeAuthority(LicenseAuthority):
    """
    Scripted license authority.

    Each call pops the next outcome from the matching queue; an exception
    instance is raised, anything else is returned.  An empty queue returns a
    default grant.
    """

    def __init__(self):
        self.renew_outcomes: List = []
        self.activate_outcomes: List = []
        self.reload_outcomes: List = []
        self.calls: List[tuple] = []
        self.gate: Optional[asyncio.Event] = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def _outcome(self, queue: List):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            outcome = queue.pop(0) if queue else make_grant()
        finally:
            self.in_flight -= 1
        if isinstance(outcome, (AuthorityError, Exception)):
            raise outcome
        return outcome

    async def renew(self, instance_id, tenant_id):
        self.calls.append(("renew", instance_id, tenant_id))
        return await self._outcome(self.renew_outcomes)

    async def activate(self, activation_key):
        self.calls.append(("activate", activation_key))
        return await self._outcome(self.activate_outcomes)

    async def reload(self):
        self.calls.append(("reload",))
        return await self._outcome(self.reload_outcomes)

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_settings(**overrides) -> RenewalSettings:
    values = {
        "auto_renew_enabled": True,
        "auto_renew_offset": 600,
        "renewal_interval": 3600,
        "multi_instance_enabled": False,
        "tenant_id": 7,
        "instance_role": InstanceRole.MAIN,
        "instance_id": "instance-a",
        "backoff_initial": 5,
        "backoff_max": 300,
        "shutdown_grace": 0.5,
        "management_token_secret": TEST_TOKEN_SECRET,
        "management_token_ttl": 900,
    }
    values.update(overrides)
    return RenewalSettings(**values)


@pytest.fixture
def authority():
    """Fixture providing a scripted license authority."""
    return FakeAuthority()


@pytest.fixture
def clock():
    """Fixture providing a controllable monotonic clock."""
    return FakeClock()


@pytest.fixture
def settings():
    """Fixture providing single-instance renewal settings."""
    return make_settings()


@pytest.fixture
def store():
    """Fixture providing an empty entitlement store."""
    return EntitlementStore()


@pytest.fixture(autouse=True)
def clear_license_service_registration():
    """Make sure no test sees another test's registered service."""
    set_license_service(None)
    yield
    set_license_service(None)
