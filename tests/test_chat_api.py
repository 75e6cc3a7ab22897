"""Tests for POST /api/chat/send."""
import pytest

from jurisia.dependencies.services import get_chat_orchestrator
from jurisia.main import app
from jurisia.services.chat_service import ChatSendOrchestrator
from jurisia.services.llm_client import LLMTimeoutError


@pytest.mark.asyncio
async def test_send_creates_conversation_for_known_user(client, auth_headers):
    response = await client.post(
        "/api/chat/send", json={"message": "O que é dano moral?"}, headers=auth_headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "success"
    assert data["attempts"] == 1
    assert data["statusHistory"] == ["idle", "sending", "success"]
    assert data["tokenUsage"]["total"] == 30
    assert "Súmula 37 do STJ" in data["references"]["caseLaw"]
    assert data["conversationId"]

    messages = await client.get(
        f"/api/conversations/{data['conversationId']}/messages", headers=auth_headers
    )
    assert [m["role"] for m in messages.json()] == ["user", "assistant"]


@pytest.mark.asyncio
async def test_anonymous_send_is_not_persisted(client):
    response = await client.post("/api/chat/send", json={"message": "Pergunta"})
    assert response.status_code == 200
    assert response.json()["conversationId"] is None


@pytest.mark.asyncio
async def test_history_is_accepted(client):
    response = await client.post(
        "/api/chat/send",
        json={
            "message": "E no caso de danos materiais?",
            "history": [
                {"role": "user", "content": "O que é dano moral?"},
                {"role": "assistant", "content": "É a lesão a direito da personalidade."},
            ],
        },
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_empty_message_is_rejected(client):
    response = await client.post("/api/chat/send", json={"message": "   "})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"


@pytest.mark.asyncio
async def test_invalid_history_role_is_rejected(client):
    response = await client.post(
        "/api/chat/send",
        json={"message": "Pergunta", "history": [{"role": "system", "content": "x"}]},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_failed_send_answers_200_with_degraded_reply(client, make_llm, recording_sleep):
    llm = make_llm(fail_always=LLMTimeoutError("slow"))
    app.dependency_overrides[get_chat_orchestrator] = lambda: ChatSendOrchestrator(
        llm=llm, sleep=recording_sleep
    )

    response = await client.post("/api/chat/send", json={"message": "Pergunta"})

    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "failed"
    assert data["failureKind"] == "timeout"
    assert data["attempts"] == 3
    assert data["reply"].startswith("Tempo limite excedido")


@pytest.mark.asyncio
async def test_send_to_another_users_conversation_is_404(
    client, fake_llm, auth_headers, other_auth_headers
):
    created = await client.post("/api/conversations", json={"title": "Privada"}, headers=auth_headers)
    conversation_id = created.json()["id"]

    response = await client.post(
        "/api/chat/send",
        json={"message": "mensagem injetada", "conversationId": conversation_id},
        headers=other_auth_headers,
    )

    assert response.status_code == 404
    assert fake_llm.calls == []
    messages = await client.get(f"/api/conversations/{conversation_id}/messages", headers=auth_headers)
    assert messages.json() == []


@pytest.mark.asyncio
async def test_anonymous_send_never_writes_into_a_conversation(client, auth_headers):
    created = await client.post("/api/conversations", json={"title": "Privada"}, headers=auth_headers)
    conversation_id = created.json()["id"]

    response = await client.post(
        "/api/chat/send", json={"message": "anônima", "conversationId": conversation_id}
    )

    assert response.status_code == 200
    assert response.json()["conversationId"] is None
    messages = await client.get(f"/api/conversations/{conversation_id}/messages", headers=auth_headers)
    assert messages.json() == []


@pytest.mark.asyncio
async def test_owner_can_continue_their_conversation(client, auth_headers):
    created = await client.post("/api/conversations", json={"title": "Minha"}, headers=auth_headers)
    conversation_id = created.json()["id"]

    response = await client.post(
        "/api/chat/send",
        json={"message": "Continuação", "conversationId": conversation_id},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["conversationId"] == conversation_id
    messages = await client.get(f"/api/conversations/{conversation_id}/messages", headers=auth_headers)
    assert [m["content"] for m in messages.json()][0] == "Continuação"
