from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from medsim_api.app import build_inference_client, build_stats_store, create_app
from medsim_api.config.settings import Settings
from medsim_api.db.session import reset_engine
from medsim_api.services.inference import GeminiInferenceClient, UnconfiguredInferenceClient
from medsim_api.services.persistence import InMemoryStatsStore, SqlAlchemyStatsStore

pytestmark = pytest.mark.asyncio


async def test_post_message_returns_replies(client: AsyncClient) -> None:
    resp = await client.post("/api/v1/chat/messages", json={"user_id": "u1", "text": "/start"})

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["user_id"] == "u1"
    assert payload["replies"][0].startswith("Welcome to MedSim")


async def test_session_state_errors_are_normal_replies(client: AsyncClient) -> None:
    resp = await client.post(
        "/api/v1/chat/messages", json={"user_id": "u1", "text": "Acute appendicitis"}
    )

    assert resp.status_code == 200
    assert resp.json()["replies"] == ["No active case. Start one with /practice first."]


async def test_session_summary_after_practice(client: AsyncClient) -> None:
    await client.post("/api/v1/chat/messages", json={"user_id": "u2", "text": "/practice basic"})

    resp = await client.get("/api/v1/chat/sessions/u2")

    assert resp.status_code == 200
    summary = resp.json()
    assert summary["state"] == "case_active"
    assert summary["case_id"] == "fallback-basic-chest-pain"
    assert summary["level"] == "student"
    assert summary["stats"] == {
        "total_cases": 0,
        "correct_diagnoses": 0,
        "correct_triages": 0,
        "average_score": 0.0,
    }


async def test_health(client: AsyncClient) -> None:
    resp = await client.get("/api/v1/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "scheduler": "idle", "pending_requests": 0}


async def test_validation_errors_use_error_envelope(client: AsyncClient) -> None:
    resp = await client.post("/api/v1/chat/messages", json={"user_id": "u1", "text": ""})

    assert resp.status_code == 422
    payload = resp.json()
    assert payload["error"]["code"] == 422
    assert payload["error"]["details"]["errors"]


async def test_services_unavailable_without_lifespan(app) -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as raw:
        resp = await raw.get("/api/v1/health")

    assert resp.status_code == 503
    assert resp.json()["error"]["message"] == "MedSim services are not initialised."


async def test_build_inference_client_depends_on_api_key(settings: Settings) -> None:
    assert isinstance(build_inference_client(settings), UnconfiguredInferenceClient)

    configured = build_inference_client(settings.model_copy(update={"gemini_api_key": "key"}))
    try:
        assert isinstance(configured, GeminiInferenceClient)
    finally:
        await configured.aclose()


async def test_build_stats_store_follows_persist_flag(settings: Settings) -> None:
    assert isinstance(build_stats_store(settings), InMemoryStatsStore)
    persistent = build_stats_store(settings.model_copy(update={"persist_stats": True}))
    try:
        assert isinstance(persistent, SqlAlchemyStatsStore)
    finally:
        await reset_engine()


async def test_create_app_registers_routes(settings: Settings) -> None:
    app = create_app(settings)
    paths = set(app.openapi()["paths"])

    assert {"/api/v1/chat/messages", "/api/v1/chat/sessions/{user_id}", "/api/v1/health"} <= paths
