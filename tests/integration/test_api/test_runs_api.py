"""Integration tests for the run endpoints over HTTP"""

import pytest
import pytest_asyncio
from sqlalchemy import update

from assistant_runs.core.orm import Run as RunORM
from tests.fixtures.clients import create_test_app, make_client
from tests.fixtures.database import (
    fetch_job,
    function_call,
    make_paused_run,
    make_run,
)


@pytest_asyncio.fixture
async def client(session_maker):
    async with make_client(create_test_app(session_maker)) as client:
        yield client


async def _create_assistant(client):
    resp = await client.post(
        "/assistants",
        json={"model": "gpt-4o", "instructions": "Answer weather questions."},
    )
    assert resp.status_code == 200
    return resp.json()["id"]


async def _create_thread(client):
    resp = await client.post(
        "/threads",
        json={"messages": [{"role": "user", "content": "Weather in Paris?"}]},
    )
    assert resp.status_code == 200
    return resp.json()["id"]


class TestCreateAndRead:
    @pytest.mark.asyncio
    async def test_create_run_returns_queued_run(self, client):
        assistant_id = await _create_assistant(client)
        thread_id = await _create_thread(client)

        resp = await client.post(
            f"/threads/{thread_id}/runs", json={"assistant_id": assistant_id}
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["object"] == "thread.run"
        assert data["status"] == "queued"
        assert data["thread_id"] == thread_id
        assert data["instructions"] == "Answer weather questions."
        assert isinstance(data["created_at"], int)

    @pytest.mark.asyncio
    async def test_create_run_unknown_assistant(self, client):
        thread_id = await _create_thread(client)

        resp = await client.post(
            f"/threads/{thread_id}/runs", json={"assistant_id": "asst_missing"}
        )

        assert resp.status_code == 404
        body = resp.json()
        assert body["error"] == "not_found"
        assert "asst_missing" in body["message"]

        listed = await client.get(f"/threads/{thread_id}/runs")
        assert listed.json()["data"] == []

    @pytest.mark.asyncio
    async def test_create_thread_and_run(self, client):
        assistant_id = await _create_assistant(client)

        resp = await client.post(
            "/threads/runs",
            json={
                "assistant_id": assistant_id,
                "thread": {"messages": [{"role": "user", "content": "Hi"}]},
            },
        )

        assert resp.status_code == 200
        run = resp.json()
        thread = await client.get(f"/threads/{run['thread_id']}")
        assert thread.status_code == 200

    @pytest.mark.asyncio
    async def test_list_and_get_runs(self, client):
        assistant_id = await _create_assistant(client)
        thread_id = await _create_thread(client)
        created = [
            (
                await client.post(
                    f"/threads/{thread_id}/runs", json={"assistant_id": assistant_id}
                )
            ).json()
            for _ in range(3)
        ]

        resp = await client.get(f"/threads/{thread_id}/runs", params={"limit": 2})

        assert resp.status_code == 200
        page = resp.json()
        assert page["object"] == "list"
        assert len(page["data"]) == 2
        assert page["has_more"] is True

        got = await client.get(f"/threads/{thread_id}/runs/{created[0]['id']}")
        assert got.status_code == 200
        assert got.json()["id"] == created[0]["id"]

    @pytest.mark.asyncio
    async def test_invalid_limit_is_validation_error(self, client):
        thread_id = await _create_thread(client)

        resp = await client.get(f"/threads/{thread_id}/runs", params={"limit": 0})

        assert resp.status_code == 422
        assert resp.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_get_unknown_run(self, client):
        thread_id = await _create_thread(client)

        resp = await client.get(f"/threads/{thread_id}/runs/run_missing")

        assert resp.status_code == 404


class TestModifyRun:
    @pytest.mark.asyncio
    async def test_modify_metadata(self, client):
        assistant_id = await _create_assistant(client)
        thread_id = await _create_thread(client)
        run = (
            await client.post(
                f"/threads/{thread_id}/runs",
                json={"assistant_id": assistant_id, "metadata": {"a": "1"}},
            )
        ).json()

        resp = await client.post(
            f"/threads/{thread_id}/runs/{run['id']}", json={"metadata": {"b": "2"}}
        )

        assert resp.status_code == 200
        assert resp.json()["metadata"] == {"a": "1", "b": "2"}

    @pytest.mark.asyncio
    async def test_modify_status_is_rejected(self, client):
        assistant_id = await _create_assistant(client)
        thread_id = await _create_thread(client)
        run = (
            await client.post(
                f"/threads/{thread_id}/runs", json={"assistant_id": assistant_id}
            )
        ).json()

        resp = await client.post(
            f"/threads/{thread_id}/runs/{run['id']}", json={"status": "completed"}
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "bad_request"
        got = await client.get(f"/threads/{thread_id}/runs/{run['id']}")
        assert got.json()["status"] == "queued"


class TestCancelRun:
    @pytest.mark.asyncio
    async def test_cancel_before_claim_then_cancel_again(self, client, session_maker):
        assistant_id = await _create_assistant(client)
        thread_id = await _create_thread(client)
        run = (
            await client.post(
                f"/threads/{thread_id}/runs", json={"assistant_id": assistant_id}
            )
        ).json()

        first = await client.post(f"/threads/{thread_id}/runs/{run['id']}/cancel")
        second = await client.post(f"/threads/{thread_id}/runs/{run['id']}/cancel")

        assert first.status_code == 200
        assert first.json()["status"] == "cancelled"
        assert second.status_code == 200
        assert second.json()["status"] == "cancelled"
        assert await fetch_job(session_maker, run["id"]) is None

    @pytest.mark.asyncio
    async def test_cancel_claimed_run(self, client, session, thread, assistant):
        run = await make_run(
            session, thread, assistant, status="in_progress", job_status="active"
        )

        resp = await client.post(f"/threads/{thread.thread_id}/runs/{run.run_id}/cancel")

        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelling"
        assert resp.json()["cancelled_at"] is not None

    @pytest.mark.asyncio
    async def test_cancel_completed_run(self, client, session, thread, assistant):
        run = await make_run(session, thread, assistant, status="completed")

        resp = await client.post(f"/threads/{thread.thread_id}/runs/{run.run_id}/cancel")

        assert resp.status_code == 400
        assert resp.json()["message"] == 'Run status is "completed", cannot cancel run'


class TestSubmitToolOutputs:
    @pytest.mark.asyncio
    async def test_submit_resumes_run(
        self, client, session, session_maker, thread, assistant
    ):
        run, step = await make_paused_run(
            session, thread, assistant, [function_call("tc1")]
        )

        resp = await client.post(
            f"/threads/{thread.thread_id}/runs/{run.run_id}/submit_tool_outputs",
            json={"tool_outputs": [{"tool_call_id": "tc1", "output": "42"}]},
        )

        assert resp.status_code == 200
        assert resp.json() == {"run_id": run.run_id, "thread_id": thread.thread_id}

        got = await client.get(f"/threads/{thread.thread_id}/runs/{run.run_id}")
        assert got.json()["status"] == "queued"
        assert got.json()["required_action"] is None

        step_resp = await client.get(
            f"/threads/{thread.thread_id}/runs/{run.run_id}/steps/{step.step_id}"
        )
        step_data = step_resp.json()
        assert step_data["status"] == "completed"
        assert step_data["step_details"]["tool_calls"][0]["function"]["output"] == "42"

        steps = await client.get(f"/threads/{thread.thread_id}/runs/{run.run_id}/steps")
        assert [s["id"] for s in steps.json()["data"]] == [step.step_id]

    @pytest.mark.asyncio
    async def test_submit_on_running_run(
        self, client, session, session_maker, thread, assistant
    ):
        run, _ = await make_paused_run(
            session, thread, assistant, [function_call("tc1")]
        )
        await session.execute(
            update(RunORM).where(RunORM.run_id == run.run_id).values(status="in_progress")
        )
        await session.commit()

        resp = await client.post(
            f"/threads/{thread.thread_id}/runs/{run.run_id}/submit_tool_outputs",
            json={"tool_outputs": [{"tool_call_id": "tc1", "output": "42"}]},
        )

        assert resp.status_code == 400
        assert resp.json()["message"] == (
            'Run status is "in_progress", cannot submit tool outputs'
        )
        assert await fetch_job(session_maker, run.run_id) is None

    @pytest.mark.asyncio
    async def test_empty_tool_outputs_is_validation_error(
        self, client, session, thread, assistant
    ):
        run, _ = await make_paused_run(session, thread, assistant, [function_call("tc1")])

        resp = await client.post(
            f"/threads/{thread.thread_id}/runs/{run.run_id}/submit_tool_outputs",
            json={"tool_outputs": []},
        )

        assert resp.status_code == 422
