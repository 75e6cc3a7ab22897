"""Tests for /api/conversations endpoints."""
import pytest


@pytest.mark.asyncio
async def test_create_requires_user_header(client):
    response = await client.post("/api/conversations", json={"title": "Sem dono"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_and_list(client, auth_headers, other_auth_headers):
    created = await client.post(
        "/api/conversations", json={"title": "Contrato de aluguel"}, headers=auth_headers
    )
    assert created.status_code == 201
    body = created.json()
    assert body["title"] == "Contrato de aluguel"
    assert body["ownerId"] == "test-user-1"

    mine = await client.get("/api/conversations", headers=auth_headers)
    theirs = await client.get("/api/conversations", headers=other_auth_headers)

    assert [c["id"] for c in mine.json()] == [body["id"]]
    assert theirs.json() == []


@pytest.mark.asyncio
async def test_empty_title_is_rejected(client, auth_headers):
    response = await client.post("/api/conversations", json={"title": ""}, headers=auth_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_messages_of_new_conversation_are_empty(client, auth_headers):
    created = await client.post("/api/conversations", json={"title": "Nova"}, headers=auth_headers)
    response = await client.get(
        f"/api/conversations/{created.json()['id']}/messages", headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_other_users_cannot_read_messages(client, auth_headers, other_auth_headers):
    created = await client.post("/api/conversations", json={"title": "Privada"}, headers=auth_headers)
    response = await client.get(
        f"/api/conversations/{created.json()['id']}/messages", headers=other_auth_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_unknown_conversation_is_404(client, auth_headers):
    response = await client.get("/api/conversations/missing/messages", headers=auth_headers)
    assert response.status_code == 404
