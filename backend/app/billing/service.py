"""Reconciles subscription webhooks into account state."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Protocol

from pydantic import ValidationError

from ..accounts import (
    Account,
    AccountConflictError,
    AccountCreate,
    AccountDirectory,
    AccountPatch,
    AccountRole,
    DirectoryWriteError,
)
from ..entitlements import (
    DEFAULT_PLAN_CATALOG,
    PlanCatalog,
    PlanEntry,
    compute_expiration,
    format_timestamp,
    parse_timestamp,
)
from .credentials import CredentialStrategy
from .models import (
    CredentialDeliveryPayload,
    CustomerInfo,
    RECONCILED_EVENT_TYPES,
    OutcomeKind,
    ReconciliationOutcome,
    WebhookEvent,
)

logger = logging.getLogger("billing")

Scheduler = Callable[..., Any]

GENERIC_SERVER_ERROR_MESSAGE = "Erro interno do servidor."


class NotificationDispatcher(Protocol):
    """Delivers the welcome message for a newly provisioned account."""

    def send_welcome(self, account: Account, credentials: CredentialDeliveryPayload) -> None:
        ...


@dataclass
class WebhookReconciler:
    """Applies one subscription webhook to the account directory.

    Existing accounts are reactivated and their plan extended; unknown emails
    get a new account followed by a best-effort welcome notification. The
    notification never changes the outcome reported to the caller.
    """

    directory: AccountDirectory
    credential_strategy: CredentialStrategy
    notifier: Optional[NotificationDispatcher] = None
    catalog: PlanCatalog = field(default=DEFAULT_PLAN_CATALOG)
    login_url: Optional[str] = None

    def reconcile(self, body: Any, *, schedule: Optional[Scheduler] = None) -> ReconciliationOutcome:
        """Reconcile a decoded webhook body.

        ``body`` is either an event object or a list whose first element is
        the event. ``schedule`` receives ``(callable, *args)`` to run the
        welcome notification outside the request; without it the
        notification runs inline.
        """

        try:
            return self._reconcile(body, schedule)
        except Exception as exc:
            logger.exception("Unhandled error while processing subscription webhook")
            return ReconciliationOutcome(
                accepted=False,
                kind=OutcomeKind.UNHANDLED_ERROR,
                message=GENERIC_SERVER_ERROR_MESSAGE,
                error=str(exc) or exc.__class__.__name__,
            )

    def _reconcile(self, body: Any, schedule: Optional[Scheduler]) -> ReconciliationOutcome:
        document = _first_event(body)
        if not isinstance(document, dict) or not isinstance(document.get("data"), dict):
            return _rejected(OutcomeKind.MALFORMED_PAYLOAD, "Payload inválido.")

        # Ignored events are acknowledged whatever the shape of their data.
        raw_event = document.get("event")
        reconciled = isinstance(raw_event, str) and raw_event in RECONCILED_EVENT_TYPES
        if not reconciled or not document["data"].get("paidAt"):
            logger.info(
                "Webhook event %r received without action (no payment date or irrelevant type)",
                raw_event,
                extra={"webhook_event": raw_event},
            )
            return ReconciliationOutcome(
                accepted=True,
                kind=OutcomeKind.NO_OP,
                message=f"Evento '{raw_event}' recebido, mas não acionou nenhuma ação.",
            )

        try:
            event = WebhookEvent.model_validate(document)
        except ValidationError as exc:
            logger.info("Rejected malformed webhook payload: %s", exc.errors(include_url=False))
            return _rejected(OutcomeKind.MALFORMED_PAYLOAD, "Payload inválido.")

        customer = event.data.customer
        if customer is None or not customer.has_required_fields:
            return _rejected(OutcomeKind.MISSING_CUSTOMER_FIELDS, "Dados do cliente ausentes.")

        product_name = event.data.product.name if event.data.product else None
        entry = self.catalog.resolve(product_name)
        if entry is None:
            logger.warning(
                "Unrecognized plan %r; check the product catalog",
                product_name,
                extra={"webhook_event": event.event, "product_name": product_name},
            )
            return _rejected(
                OutcomeKind.UNRECOGNIZED_PLAN,
                f'Plano "{product_name}" não configurado.',
            )

        paid_at = parse_timestamp(event.data.paid_at)
        expires_at = compute_expiration(paid_at, entry.duration_months)
        email = (customer.email or "").strip()

        existing = self.directory.find_by_email(email)
        if existing is not None:
            return self._extend(existing, entry, expires_at)
        return self._provision(email, customer, entry, expires_at, schedule)

    def _extend(self, account: Account, entry: PlanEntry, expires_at: datetime) -> ReconciliationOutcome:
        logger.info(
            "Account %s already exists; renewing subscription",
            account.email,
            extra={"customer_email": account.email, "account_id": account.id},
        )
        patch = AccountPatch(is_active=True, plan_tier=entry.plan_tier, plan_expires_at=expires_at)
        try:
            updated = self.directory.update(account.id, patch)
        except DirectoryWriteError as exc:
            logger.error(
                "Failed to update account %s via webhook: %s",
                account.email,
                exc,
                extra={"customer_email": account.email, "account_id": account.id},
            )
            return _rejected(
                OutcomeKind.DIRECTORY_WRITE_FAILURE,
                f"Falha ao atualizar usuário: {exc}",
                error=str(exc),
            )

        return ReconciliationOutcome(
            accepted=True,
            kind=OutcomeKind.UPDATED,
            message="Assinatura de usuário existente foi renovada/atualizada.",
            account_id=updated.id,
        )

    def _provision(
        self,
        email: str,
        customer: CustomerInfo,
        entry: PlanEntry,
        expires_at: datetime,
        schedule: Optional[Scheduler],
    ) -> ReconciliationOutcome:
        logger.info("Creating account for %s", email, extra={"customer_email": email})
        password = self.credential_strategy.issue(email)
        payload = AccountCreate(
            email=email,
            password=password,
            display_name=(customer.name or "").strip(),
            phone=customer.phone or "",
            tax_id=customer.tax_id or "",
            role=AccountRole.USER,
            is_active=True,
            plan_tier=entry.plan_tier,
            plan_expires_at=expires_at,
            must_change_password=True,
        )

        try:
            account = self.directory.create(payload)
        except AccountConflictError:
            # Concurrent delivery created the account between lookup and insert.
            logger.info(
                "Account for %s created concurrently; applying renewal instead",
                email,
                extra={"customer_email": email},
            )
            existing = self.directory.find_by_email(email)
            if existing is None:
                return _rejected(
                    OutcomeKind.DIRECTORY_WRITE_FAILURE,
                    "Falha ao registrar usuário: conflito sem registro correspondente.",
                    error="conflict without matching account",
                )
            return self._extend(existing, entry, expires_at)
        except DirectoryWriteError as exc:
            logger.error(
                "Failed to register account %s via webhook: %s",
                email,
                exc,
                extra={"customer_email": email},
            )
            return _rejected(
                OutcomeKind.DIRECTORY_WRITE_FAILURE,
                f"Falha ao registrar usuário: {exc}",
                error=str(exc),
            )

        logger.info(
            "Account %s created via webhook with plan %s expiring %s",
            account.email,
            entry.plan_tier.value,
            format_timestamp(expires_at),
            extra={"customer_email": account.email, "account_id": account.id},
        )
        credentials = CredentialDeliveryPayload(
            email=account.email,
            display_name=account.display_name,
            password=password,
            must_change_password=account.must_change_password,
            login_url=self.login_url,
        )
        self._schedule_welcome(account, credentials, schedule)

        return ReconciliationOutcome(
            accepted=True,
            kind=OutcomeKind.CREATED,
            message="Usuário criado com sucesso.",
            account_id=account.id,
        )

    def _schedule_welcome(
        self,
        account: Account,
        credentials: CredentialDeliveryPayload,
        schedule: Optional[Scheduler],
    ) -> None:
        if self.notifier is None:
            logger.warning(
                "No notification dispatcher configured; welcome email for %s not sent",
                account.email,
            )
            return
        if schedule is None:
            self.send_welcome_safely(account, credentials)
            return
        try:
            schedule(self.send_welcome_safely, account, credentials)
        except Exception:
            logger.exception(
                "Failed to schedule welcome notification for %s",
                account.email,
                extra={"customer_email": account.email, "account_id": account.id},
            )

    def send_welcome_safely(self, account: Account, credentials: CredentialDeliveryPayload) -> None:
        """Send the welcome notification, logging instead of raising on failure."""

        if self.notifier is None:
            return
        try:
            self.notifier.send_welcome(account, credentials)
        except Exception:
            logger.exception(
                "Failed to send welcome notification to %s",
                account.email,
                extra={"customer_email": account.email, "account_id": account.id},
            )


def _first_event(body: Any) -> Any:
    if isinstance(body, list):
        return body[0] if body else None
    return body


def _rejected(kind: OutcomeKind, message: str, *, error: Optional[str] = None) -> ReconciliationOutcome:
    return ReconciliationOutcome(accepted=False, kind=kind, message=message, error=error)


__all__ = [
    "GENERIC_SERVER_ERROR_MESSAGE",
    "NotificationDispatcher",
    "WebhookReconciler",
]
