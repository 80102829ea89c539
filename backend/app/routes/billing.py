"""API routes receiving payment-provider subscription webhooks."""
from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Request, status
from fastapi.responses import JSONResponse

from ..billing import GENERIC_SERVER_ERROR_MESSAGE, OutcomeKind, ReconciliationOutcome, WebhookReconciler
from ..schemas.billing import WebhookResponse
from ..services.billing import get_webhook_config, get_webhook_reconciler


logger = logging.getLogger("billing")

router = APIRouter(prefix="/api", tags=["billing"])


def _json_response(outcome: ReconciliationOutcome) -> JSONResponse:
    body = WebhookResponse.from_outcome(outcome).to_body()
    return JSONResponse(status_code=outcome.status_code, content=body)


def process_webhook_body(
    raw_body: bytes,
    *,
    reconciler: WebhookReconciler,
    background_tasks: Optional[BackgroundTasks] = None,
) -> JSONResponse:
    """Decode ``raw_body`` and reconcile it into a JSON response."""

    try:
        document = json.loads(raw_body or b"null")
    except ValueError:
        logger.info("Rejected webhook with undecodable JSON body")
        outcome = ReconciliationOutcome(
            accepted=False,
            kind=OutcomeKind.MALFORMED_PAYLOAD,
            message="Payload inválido.",
        )
        return _json_response(outcome)

    schedule = background_tasks.add_task if background_tasks is not None else None
    outcome = reconciler.reconcile(document, schedule=schedule)
    return _json_response(outcome)


@router.post("/billing/webhook")
@router.post("/create-user")
async def receive_subscription_webhook(request: Request, background_tasks: BackgroundTasks) -> JSONResponse:
    try:
        raw_body = await request.body()
        reconciler = get_webhook_reconciler()
        tasks = background_tasks if get_webhook_config().notify_in_background else None
        return process_webhook_body(raw_body, reconciler=reconciler, background_tasks=tasks)
    except Exception as exc:
        logger.exception("Error while processing subscription webhook")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": GENERIC_SERVER_ERROR_MESSAGE, "error": str(exc)},
        )
