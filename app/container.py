# app/container.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from app.bulk.coordinator import AdminPayoutActions, BulkCoordinator
from app.gateways.base import PayoutGateway
from app.gateways.factory import build_gateway
from app.ledger.accessor import Ledger, PgLedger
from app.notifications.notifier import BackgroundNotifier, HttpNotifier, LogNotifier, Notifier
from app.partners.accounts import PartnerAccounts, PgPartnerAccounts
from app.partners.onboarding import ConnectOnboarding
from app.payouts.repository import PayoutStore, PgPayoutStore
from app.payouts.service import PayoutService
from app.payouts.state_machine import PayoutStateMachine
from app.payouts.validator import PayoutValidator
from app.webhooks.intake import WebhookIntake
from app.webhooks.reconciler import WebhookReconciler
from app.webhooks.repository import EventLog, PgEventLog
from db import Database
from services.audit_log import AuditLog, PgAuditLog
from services.maintenance import MaintenanceSweep, PgReportStore, ReportStore
from services.retry import RetryPolicy, policy_from_settings
from settings import Settings


logger = logging.getLogger("partner_payouts.container")


@dataclass
class PayoutContainer:
    """
    Every engine component, wired once at process start and shared by
    reference. Storage and collaborators are injected; the rest is derived.
    """

    settings: Settings
    store: PayoutStore
    ledger: Ledger
    event_log: EventLog
    audit: AuditLog
    reports: ReportStore
    gateway: PayoutGateway
    notifier: Notifier
    accounts: PartnerAccounts
    retry: Optional[RetryPolicy] = None
    db: Optional[Database] = None

    machine: PayoutStateMachine = field(init=False)
    validator: PayoutValidator = field(init=False)
    payouts: PayoutService = field(init=False)
    reconciler: WebhookReconciler = field(init=False)
    intake: WebhookIntake = field(init=False)
    admin_actions: AdminPayoutActions = field(init=False)
    bulk: BulkCoordinator = field(init=False)
    sweep: MaintenanceSweep = field(init=False)
    onboarding: ConnectOnboarding = field(init=False)

    def __post_init__(self) -> None:
        s = self.settings
        if self.retry is None:
            self.retry = policy_from_settings(s)

        self.machine = PayoutStateMachine(self.store, self.notifier, retry=self.retry)
        self.validator = PayoutValidator(self.ledger, self.store, min_payout_cents=s.PAYOUT_MIN_CENTS)
        self.payouts = PayoutService(
            self.machine,
            self.validator,
            self.store,
            self.ledger,
            self.gateway,
            platform_fee_bps=s.PAYOUT_PLATFORM_FEE_BPS,
            gateway_fee_cents=s.PAYOUT_GATEWAY_FEE_CENTS,
            currency=s.PAYOUT_CURRENCY,
        )
        self.reconciler = WebhookReconciler(self.machine, self.store, self.event_log)
        self.intake = WebhookIntake(
            self.reconciler,
            self.event_log,
            secret=s.STRIPE_WEBHOOK_SECRET,
            tolerance_s=s.WEBHOOK_TOLERANCE_SECONDS,
        )
        self.admin_actions = AdminPayoutActions(self.machine, self.gateway, self.ledger, self.audit)
        self.bulk = BulkCoordinator(self.admin_actions)
        self.sweep = MaintenanceSweep(
            store=self.store,
            machine=self.machine,
            gateway=self.gateway,
            ledger=self.ledger,
            intake=self.intake,
            event_log=self.event_log,
            reports=self.reports,
            processing_sla_minutes=s.PROCESSING_SLA_MINUTES,
            receipt_replay_after_s=s.RECEIPT_REPLAY_AFTER_SECONDS,
            receipt_max_attempts=s.RECEIPT_REPLAY_MAX_ATTEMPTS,
            retention_days=s.PROCESSED_EVENT_RETENTION_DAYS,
            batch_size=s.SWEEP_BATCH_SIZE,
        )
        self.onboarding = ConnectOnboarding(
            self.gateway,
            self.ledger,
            self.accounts,
            refresh_url=s.CONNECT_REFRESH_URL,
            return_url=s.CONNECT_RETURN_URL,
            country=s.CONNECT_COUNTRY,
            min_payout_cents=s.PAYOUT_MIN_CENTS,
        )

    def ping(self) -> tuple[bool, str | None]:
        if self.db is None:
            return True, None
        return self.db.ping()

    def close(self) -> None:
        if isinstance(self.notifier, BackgroundNotifier):
            self.notifier.close()
        if self.db is not None:
            self.db.close()


def build_notifier(s: Settings) -> Notifier:
    url = (s.NOTIFY_WEBHOOK_URL or "").strip()
    if url:
        return BackgroundNotifier(HttpNotifier(url, timeout_s=s.NOTIFY_HTTP_TIMEOUT_S))
    return LogNotifier()


def build_container(s: Settings) -> PayoutContainer:
    """PostgreSQL-backed container for the running service and scripts."""
    db = Database(
        s.DATABASE_URL,
        minconn=s.DB_POOL_MIN,
        maxconn=s.DB_POOL_MAX,
        statement_timeout_ms=s.DB_STATEMENT_TIMEOUT_MS,
    )
    gateway = build_gateway(s)
    logger.info("container_build gateway=%s mode=%s", gateway.name, s.GATEWAY_MODE)

    return PayoutContainer(
        settings=s,
        store=PgPayoutStore(db),
        ledger=PgLedger(db),
        event_log=PgEventLog(db),
        audit=PgAuditLog(db),
        reports=PgReportStore(db),
        gateway=gateway,
        notifier=build_notifier(s),
        accounts=PgPartnerAccounts(db),
        db=db,
    )
