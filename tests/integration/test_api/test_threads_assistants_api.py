"""Integration tests for the thread and assistant collaborators"""

import pytest
import pytest_asyncio
from sqlalchemy import select

from assistant_runs.core.orm import Message as MessageORM
from tests.fixtures.clients import create_test_app, make_client


@pytest_asyncio.fixture
async def client(session_maker):
    async with make_client(create_test_app(session_maker)) as client:
        yield client


@pytest.mark.asyncio
async def test_create_and_get_assistant(client):
    resp = await client.post(
        "/assistants",
        json={"model": "gpt-4o", "name": "Weather bot", "metadata": {"team": "a"}},
    )

    assert resp.status_code == 200
    assistant = resp.json()
    assert assistant["id"].startswith("asst_")
    assert assistant["object"] == "assistant"

    got = await client.get(f"/assistants/{assistant['id']}")
    assert got.json()["name"] == "Weather bot"


@pytest.mark.asyncio
async def test_unknown_assistant(client):
    resp = await client.get("/assistants/asst_missing")

    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


@pytest.mark.asyncio
async def test_create_thread_normalizes_text_messages(client, session_maker):
    resp = await client.post(
        "/threads",
        json={
            "messages": [{"role": "user", "content": "Hello"}],
            "metadata": {"channel": "web"},
        },
    )

    assert resp.status_code == 200
    thread = resp.json()
    assert thread["object"] == "thread"
    assert thread["metadata"] == {"channel": "web"}

    async with session_maker() as session:
        message = await session.scalar(
            select(MessageORM).where(MessageORM.thread_id == thread["id"])
        )
    assert message.content == [
        {"type": "text", "text": {"value": "Hello", "annotations": []}}
    ]


@pytest.mark.asyncio
async def test_unknown_thread(client):
    resp = await client.get("/threads/thread_missing")

    assert resp.status_code == 404
