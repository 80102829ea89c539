from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

from fastapi import BackgroundTasks

from backend.app.billing import ConfiguredCredentialStrategy, WebhookReconciler
from backend.app.entitlements import PlanTier
from backend.app.routes import billing as billing_routes
from backend.app.schemas.billing import WebhookResponse
from backend.tests.fakes import (
    InMemoryAccountDirectory,
    RecordingNotifier,
    make_event,
)


def _reconciler(directory, notifier=None) -> WebhookReconciler:
    return WebhookReconciler(
        directory=directory,
        credential_strategy=ConfiguredCredentialStrategy("temp-pass-123"),
        notifier=notifier,
    )


def _body(response) -> dict:
    return json.loads(response.body)


def _request(raw: bytes):
    async def body() -> bytes:
        return raw

    return SimpleNamespace(body=body)


def test_renewal_returns_success():
    directory = InMemoryAccountDirectory()
    existing = directory.add(email="maria@example.com", display_name="Maria", is_active=False)

    response = billing_routes.process_webhook_body(
        json.dumps(make_event()).encode(),
        reconciler=_reconciler(directory),
    )

    assert response.status_code == 200
    body = _body(response)
    assert body["success"] is True
    assert body["message"] == "Assinatura de usuário existente foi renovada/atualizada."
    assert "error" not in body
    assert directory.accounts[existing.id].plan_tier == PlanTier.MONTHLY


def test_creation_returns_user_id_and_defers_notification():
    directory = InMemoryAccountDirectory()
    notifier = RecordingNotifier(exc=RuntimeError("smtp down"))
    tasks = BackgroundTasks()

    response = billing_routes.process_webhook_body(
        json.dumps([make_event(event="subscription_created")]).encode(),
        reconciler=_reconciler(directory, notifier),
        background_tasks=tasks,
    )

    assert response.status_code == 200
    body = _body(response)
    assert body == {
        "success": True,
        "message": "Usuário criado com sucesso.",
        "userId": next(iter(directory.accounts)),
    }
    assert notifier.sent == []
    assert len(tasks.tasks) == 1

    asyncio.run(tasks())
    assert len(notifier.sent) == 1


def test_unknown_plan_returns_bad_request():
    directory = InMemoryAccountDirectory()

    response = billing_routes.process_webhook_body(
        json.dumps(make_event(data={"product": {"name": "Plano Desconhecido"}})).encode(),
        reconciler=_reconciler(directory),
    )

    assert response.status_code == 400
    assert _body(response) == {"success": False, "message": 'Plano "Plano Desconhecido" não configurado.'}
    assert directory.calls == []


def test_irrelevant_event_is_acknowledged():
    directory = InMemoryAccountDirectory()

    response = billing_routes.process_webhook_body(
        json.dumps(make_event(event="payment_failed")).encode(),
        reconciler=_reconciler(directory),
    )

    assert response.status_code == 200
    assert _body(response)["success"] is True
    assert directory.calls == []


def test_irrelevant_event_with_foreign_data_shape_is_acknowledged():
    directory = InMemoryAccountDirectory()
    raw = json.dumps({"event": "refund", "data": {"customer": ["x"], "paidAt": "15/01/2024"}}).encode()

    response = billing_routes.process_webhook_body(raw, reconciler=_reconciler(directory))

    assert response.status_code == 200
    assert _body(response) == {
        "success": True,
        "message": "Evento 'refund' recebido, mas não acionou nenhuma ação.",
    }
    assert directory.calls == []


def test_invalid_json_and_missing_data_return_bad_request():
    directory = InMemoryAccountDirectory()
    reconciler = _reconciler(directory)

    for raw in (b"{not json", b"", b"\xff\xfe\x00", json.dumps({"event": "subscription_created"}).encode()):
        response = billing_routes.process_webhook_body(raw, reconciler=reconciler)
        assert response.status_code == 400
        assert _body(response) == {"success": False, "message": "Payload inválido."}

    assert directory.calls == []


def test_route_uses_configured_reconciler(monkeypatch):
    directory = InMemoryAccountDirectory()
    notifier = RecordingNotifier()
    reconciler = _reconciler(directory, notifier)
    monkeypatch.setattr(billing_routes, "get_webhook_reconciler", lambda: reconciler)
    monkeypatch.setattr(
        billing_routes,
        "get_webhook_config",
        lambda: SimpleNamespace(notify_in_background=False),
    )

    response = asyncio.run(
        billing_routes.receive_subscription_webhook(
            _request(json.dumps(make_event()).encode()),
            BackgroundTasks(),
        )
    )

    assert response.status_code == 200
    assert _body(response)["userId"] in directory.accounts
    assert len(notifier.sent) == 1


def test_route_guard_returns_generic_server_error(monkeypatch):
    def broken_reconciler():
        raise RuntimeError("database not configured")

    monkeypatch.setattr(billing_routes, "get_webhook_reconciler", broken_reconciler)

    response = asyncio.run(
        billing_routes.receive_subscription_webhook(_request(b"{}"), BackgroundTasks())
    )

    assert response.status_code == 500
    assert _body(response) == {
        "success": False,
        "message": "Erro interno do servidor.",
        "error": "database not configured",
    }


def test_response_schema_uses_wire_aliases():
    response = WebhookResponse(success=True, message="ok", user_id="42")

    assert response.to_body() == {"success": True, "message": "ok", "userId": "42"}
