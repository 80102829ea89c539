"""Unit tests for the subscription webhook reconciler."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import pytest

from backend.app.accounts import (
    Account,
    AccountCreate,
    AccountPatch,
    AccountRole,
    DirectoryWriteError,
)
from backend.app.billing import ConfiguredCredentialStrategy, OutcomeKind, WebhookReconciler
from backend.app.entitlements import PlanTier
from backend.tests.fakes import InMemoryAccountDirectory, RecordingNotifier, make_event


class RacingAccountDirectory(InMemoryAccountDirectory):
    """Hides the first lookup to simulate a concurrent delivery."""

    def __init__(self) -> None:
        super().__init__()
        self._hidden_lookups = 1

    def find_by_email(self, email: str) -> Optional[Account]:
        if self._hidden_lookups:
            self._hidden_lookups -= 1
            self.calls.append(("find_by_email", email))
            return None
        return super().find_by_email(email)


class FailingCreateDirectory(InMemoryAccountDirectory):
    def create(self, payload: AccountCreate) -> Account:
        self.calls.append(("create", payload))
        raise DirectoryWriteError("database unavailable")


class FailingUpdateDirectory(InMemoryAccountDirectory):
    def update(self, account_id: str, patch: AccountPatch) -> Account:
        self.calls.append(("update", (account_id, patch)))
        raise DirectoryWriteError("database unavailable")


class ExplodingDirectory(InMemoryAccountDirectory):
    def find_by_email(self, email: str) -> Optional[Account]:
        raise ConnectionError("connection reset")


def _build(directory: Optional[InMemoryAccountDirectory] = None, notifier=None) -> WebhookReconciler:
    return WebhookReconciler(
        directory=directory or InMemoryAccountDirectory(),
        credential_strategy=ConfiguredCredentialStrategy("temp-pass-123"),
        notifier=notifier,
        login_url="https://app.example.com/login",
    )


@pytest.fixture
def directory() -> InMemoryAccountDirectory:
    return InMemoryAccountDirectory()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


def test_existing_account_is_renewed(directory, notifier):
    existing = directory.add(
        email="maria@example.com",
        display_name="Maria",
        is_active=False,
        plan_tier=PlanTier.ANNUAL,
        plan_expires_at=datetime(2023, 1, 1, tzinfo=timezone.utc),
    )
    reconciler = _build(directory, notifier)

    outcome = reconciler.reconcile(make_event())

    assert outcome.kind == OutcomeKind.UPDATED
    assert outcome.accepted is True
    assert outcome.status_code == 200
    updated = directory.accounts[existing.id]
    assert updated.is_active is True
    assert updated.plan_tier == PlanTier.MONTHLY
    assert updated.plan_expires_at == datetime(2024, 2, 15, tzinfo=timezone.utc)
    assert updated.display_name == "Maria"
    assert notifier.sent == []

    (_, (account_id, patch)) = directory.mutations[0]
    assert account_id == existing.id
    assert set(patch.changes()) == {"is_active", "plan_tier", "plan_expires_at"}


def test_new_account_is_created_and_welcomed(directory, notifier):
    reconciler = _build(directory, notifier)

    outcome = reconciler.reconcile(make_event(event="subscription_created"))

    assert outcome.kind == OutcomeKind.CREATED
    assert outcome.status_code == 200
    assert outcome.account_id is not None
    account = directory.accounts[outcome.account_id]
    assert account.email == "maria@example.com"
    assert account.display_name == "Maria Silva"
    assert account.phone == "+5511999990000"
    assert account.tax_id == "12345678900"
    assert account.birth_date == ""
    assert account.role == AccountRole.USER
    assert account.is_active is True
    assert account.must_change_password is True
    assert account.plan_tier == PlanTier.MONTHLY
    assert account.plan_expires_at == datetime(2024, 2, 15, tzinfo=timezone.utc)
    assert directory.passwords[account.id] == "temp-pass-123"

    assert len(notifier.sent) == 1
    sent_account, credentials = notifier.sent[0]
    assert sent_account.id == account.id
    assert credentials.email == "maria@example.com"
    assert credentials.password == "temp-pass-123"
    assert credentials.must_change_password is True
    assert credentials.login_url == "https://app.example.com/login"


def test_notification_failure_does_not_change_outcome(directory):
    notifier = RecordingNotifier(exc=RuntimeError("smtp down"))
    reconciler = _build(directory, notifier)

    outcome = reconciler.reconcile(make_event())

    assert outcome.kind == OutcomeKind.CREATED
    assert outcome.accepted is True
    assert outcome.account_id in directory.accounts
    assert len(notifier.sent) == 1


def test_notification_is_scheduled_when_scheduler_given(directory, notifier):
    scheduled = []
    reconciler = _build(directory, notifier)

    outcome = reconciler.reconcile(make_event(), schedule=lambda fn, *args: scheduled.append((fn, args)))

    assert outcome.kind == OutcomeKind.CREATED
    assert notifier.sent == []
    assert len(scheduled) == 1
    fn, args = scheduled[0]
    fn(*args)
    assert len(notifier.sent) == 1


def test_scheduler_failure_is_isolated(directory, notifier):
    def broken_schedule(fn, *args):
        raise RuntimeError("queue full")

    outcome = _build(directory, notifier).reconcile(make_event(), schedule=broken_schedule)

    assert outcome.kind == OutcomeKind.CREATED
    assert outcome.accepted is True


def test_missing_notifier_still_creates_account(directory):
    outcome = _build(directory, notifier=None).reconcile(make_event())

    assert outcome.kind == OutcomeKind.CREATED


def test_replaying_event_keeps_single_account(directory, notifier):
    reconciler = _build(directory, notifier)

    first = reconciler.reconcile(make_event())
    second = reconciler.reconcile(make_event())

    assert first.kind == OutcomeKind.CREATED
    assert second.kind == OutcomeKind.UPDATED
    assert len(directory.accounts) == 1
    account = next(iter(directory.accounts.values()))
    assert account.is_active is True
    assert account.plan_expires_at == datetime(2024, 2, 15, tzinfo=timezone.utc)
    assert second.account_id == first.account_id
    assert len(notifier.sent) == 1


def test_create_conflict_is_retried_as_update(notifier):
    directory = RacingAccountDirectory()
    existing = directory.add(email="maria@example.com", display_name="Maria", is_active=False)
    reconciler = _build(directory, notifier)

    outcome = reconciler.reconcile(make_event())

    assert outcome.kind == OutcomeKind.UPDATED
    assert outcome.status_code == 200
    assert outcome.account_id == existing.id
    assert len(directory.accounts) == 1
    assert directory.accounts[existing.id].is_active is True
    assert directory.accounts[existing.id].plan_tier == PlanTier.MONTHLY
    assert notifier.sent == []


def test_create_failure_is_server_error(notifier):
    directory = FailingCreateDirectory()

    outcome = _build(directory, notifier).reconcile(make_event())

    assert outcome.kind == OutcomeKind.DIRECTORY_WRITE_FAILURE
    assert outcome.accepted is False
    assert outcome.status_code == 500
    assert "database unavailable" in outcome.message
    assert notifier.sent == []


def test_update_failure_is_server_error(notifier):
    directory = FailingUpdateDirectory()
    directory.add(email="maria@example.com")

    outcome = _build(directory, notifier).reconcile(make_event())

    assert outcome.kind == OutcomeKind.DIRECTORY_WRITE_FAILURE
    assert outcome.status_code == 500


def test_unrecognized_plan_is_rejected_without_mutation(directory, notifier):
    outcome = _build(directory, notifier).reconcile(make_event(data={"product": {"name": "Plano Desconhecido"}}))

    assert outcome.kind == OutcomeKind.UNRECOGNIZED_PLAN
    assert outcome.status_code == 400
    assert outcome.accepted is False
    assert "Plano Desconhecido" in outcome.message
    assert directory.calls == []


def test_missing_product_is_rejected(directory):
    event = make_event()
    del event["data"]["product"]

    outcome = _build(directory).reconcile(event)

    assert outcome.kind == OutcomeKind.UNRECOGNIZED_PLAN
    assert directory.calls == []


@pytest.mark.parametrize(
    "customer",
    [
        None,
        {"email": "maria@example.com"},
        {"name": "Maria"},
        {"email": "", "name": "Maria"},
        {"email": "maria@example.com", "name": "   "},
    ],
)
def test_missing_customer_fields_are_rejected(directory, customer):
    outcome = _build(directory).reconcile(make_event(data={"customer": customer}))

    assert outcome.kind == OutcomeKind.MISSING_CUSTOMER_FIELDS
    assert outcome.status_code == 400
    assert directory.calls == []


@pytest.mark.parametrize(
    "event",
    [
        make_event(event="payment_failed"),
        make_event(event=None),
        make_event(data={"paidAt": None}),
        make_event(data={"paidAt": ""}),
        make_event(event="subscription_created", data={"paidAt": None, "customer": None}),
        make_event(event="payment_failed", data={"paidAt": "15/01/2024"}),
        make_event(event="pix_gerado", data={"product": "Plano Mensal"}),
        make_event(event="refund", data={"customer": ["x"]}),
        make_event(event="subscription_renewed", data={"paidAt": None, "customer": "maria@example.com"}),
        make_event(event=["subscription_created"]),
        {"event": 42, "data": {}},
        {"event": "subscription_created", "data": {}},
    ],
)
def test_irrelevant_events_are_acknowledged_without_mutation(directory, notifier, event):
    outcome = _build(directory, notifier).reconcile(event)

    assert outcome.kind == OutcomeKind.NO_OP
    assert outcome.accepted is True
    assert outcome.status_code == 200
    assert directory.calls == []
    assert notifier.sent == []


def test_unknown_event_with_unknown_plan_is_still_a_no_op(directory):
    event = make_event(event="payment_failed", data={"product": {"name": "Plano Desconhecido"}})

    outcome = _build(directory).reconcile(event)

    assert outcome.kind == OutcomeKind.NO_OP


@pytest.mark.parametrize(
    "body",
    [
        None,
        [],
        "subscription_created",
        {"event": "subscription_created"},
        {"event": "subscription_created", "data": None},
        {"event": "subscription_created", "data": "oops"},
        make_event(data={"paidAt": "not-a-date"}),
        make_event(data={"customer": "maria@example.com"}),
    ],
)
def test_malformed_payloads_are_rejected(directory, body):
    outcome = _build(directory).reconcile(body)

    assert outcome.kind == OutcomeKind.MALFORMED_PAYLOAD
    assert outcome.status_code == 400
    assert outcome.accepted is False
    assert directory.calls == []


def test_list_payload_uses_first_event(directory):
    body = [make_event(), make_event(data={"product": {"name": "Plano Desconhecido"}})]

    outcome = _build(directory).reconcile(body)

    assert outcome.kind == OutcomeKind.CREATED


def test_expiration_is_relative_to_payment_date(directory):
    outcome = _build(directory).reconcile(
        make_event(data={"paidAt": "2024-01-31T12:30:00Z", "product": {"name": "Plano 6 Meses"}})
    )

    account = directory.accounts[outcome.account_id]
    assert account.plan_tier == PlanTier.SEMIANNUAL
    assert account.plan_expires_at == datetime(2024, 7, 31, 12, 30, tzinfo=timezone.utc)


def test_unexpected_errors_become_server_errors():
    outcome = _build(ExplodingDirectory()).reconcile(make_event())

    assert outcome.kind == OutcomeKind.UNHANDLED_ERROR
    assert outcome.status_code == 500
    assert outcome.message == "Erro interno do servidor."
    assert outcome.error == "connection reset"
