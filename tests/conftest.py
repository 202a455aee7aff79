# tests/conftest.py
from __future__ import annotations

import uuid
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient

import rate_limit
from app.container import PayoutContainer
from app.gateways.mock import MockGateway
from main import create_app
from security import create_access_token
from services import metrics
from services.retry import RetryPolicy
from settings import Settings
from tests.fakes import (
    InMemoryAuditLog,
    InMemoryEventLog,
    InMemoryLedger,
    InMemoryPartnerAccounts,
    InMemoryPayoutStore,
    InMemoryReportStore,
    RecordingNotifier,
)


WEBHOOK_SECRET = "whsec_pytest_secret"


@pytest.fixture(autouse=True)
def _reset_process_state(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "0")
    rate_limit._limiter = rate_limit.InMemoryRateLimiter()
    metrics.reset()
    yield
    metrics.reset()


# ---------------------------
# Engine wiring
# ---------------------------

@pytest.fixture()
def settings() -> Settings:
    return Settings(
        GATEWAY_MODE="sandbox",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        PAYOUT_MIN_CENTS=1000,
        PAYOUT_PLATFORM_FEE_BPS=100,
        PAYOUT_GATEWAY_FEE_CENTS=25,
        PROCESSING_SLA_MINUTES=60,
        RECEIPT_REPLAY_AFTER_SECONDS=0,
        RATE_LIMIT_PAYOUT_PER_MIN=2,
    )


@pytest.fixture()
def store() -> InMemoryPayoutStore:
    return InMemoryPayoutStore()


@pytest.fixture()
def ledger(store: InMemoryPayoutStore) -> InMemoryLedger:
    return InMemoryLedger(store)


@pytest.fixture()
def event_log() -> InMemoryEventLog:
    return InMemoryEventLog()


@pytest.fixture()
def audit() -> InMemoryAuditLog:
    return InMemoryAuditLog()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def gateway() -> MockGateway:
    return MockGateway()


@pytest.fixture()
def no_sleep_retry() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay_s=0.01, max_delay_s=0.05, sleep=lambda _s: None)


@pytest.fixture()
def container(settings, store, ledger, event_log, audit, notifier, gateway, no_sleep_retry) -> PayoutContainer:
    return PayoutContainer(
        settings=settings,
        store=store,
        ledger=ledger,
        event_log=event_log,
        audit=audit,
        reports=InMemoryReportStore(),
        gateway=gateway,
        notifier=notifier,
        accounts=InMemoryPartnerAccounts(ledger),
        retry=no_sleep_retry,
    )


@pytest.fixture()
def partner_id(ledger: InMemoryLedger) -> str:
    return ledger.add_partner(f"partner-{uuid.uuid4().hex[:8]}", earned_cents=10_000)


# ---------------------------
# Client + Auth Helpers
# ---------------------------

@pytest.fixture()
def client(container: PayoutContainer) -> TestClient:
    # Needed so tests can assert 500s instead of pytest re-raising server exceptions
    return TestClient(create_app(container), raise_server_exceptions=False)


def auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def partner_headers(partner_id: str, user_id: Optional[str] = None) -> Dict[str, str]:
    token = create_access_token(user_id or f"user-{partner_id}", role="PARTNER", partner_id=partner_id)
    return auth_headers(token)


def admin_headers(user_id: str = "admin-1") -> Dict[str, str]:
    return auth_headers(create_access_token(user_id, role="ADMIN"))
