from __future__ import annotations

import threading

import requests

from agent_panel.shared.data_types import TaskState
from agent_panel.sync.task_poller import TaskPoller

RUNNING = {"description": "build docs", "status": "running", "progress": 40, "log": "step 1\n", "updatedAt": "12:00"}
DONE = {"description": "build docs", "status": "done", "progress": 100, "log": "step 1\nstep 2\n", "result": "**ok**"}


def test_blank_description_makes_no_network_call(client, session, notifications) -> None:
    poller = TaskPoller(client, notifications)

    assert poller.submit("   \n\t") is False

    assert session.calls == []
    assert [message.kind for message in notifications.messages] == ["error"]


def test_submit_posts_trimmed_description_and_refreshes(client, session, notifications) -> None:
    session.add("POST", "task", {"status": "pending"})
    session.add("GET", "task", RUNNING)
    poller = TaskPoller(client, notifications)
    poller.input = "  build docs  "

    assert poller.submit() is True

    assert session.calls_to("POST", "task")[0].json == {"description": "build docs"}
    assert len(session.calls_to("GET", "task")) == 1
    assert poller.input == ""
    assert poller.state.status == "running"
    assert poller.state.progress == 40
    assert [message.kind for message in notifications.messages] == ["success"]


def test_submit_failure_is_reported_once(client, session, notifications) -> None:
    session.add("POST", "task", {"message": "agent busy"}, status=409)
    poller = TaskPoller(client, notifications)
    poller.input = "build docs"

    assert poller.submit() is False

    assert [m.description for m in notifications.messages] == ["agent busy"]
    assert session.calls_to("GET", "task") == []
    assert poller.input == "build docs"
    assert poller.submitting is False


def test_cancel_refreshes_instead_of_guessing(client, session, notifications) -> None:
    session.add("POST", "task", {"status": "running"})
    session.add("GET", "task", {"description": "build docs", "status": "pending", "progress": 0})
    poller = TaskPoller(client, notifications)

    assert poller.cancel() is True

    assert session.calls_to("POST", "task")[0].json == {"cancel": True}
    assert poller.state.status == "pending"
    assert notifications.messages[0].title == "Cancelled"


def test_refresh_failure_does_not_raise(client, session, notifications) -> None:
    session.add("GET", "task", RUNNING)
    session.add("GET", "task", error=requests.ConnectionError("agent unreachable"))
    poller = TaskPoller(client, notifications)
    poller.refresh()

    assert poller.refresh() is False

    assert poller.state.status == "running"
    assert poller.error == "agent unreachable"
    assert [m.kind for m in notifications.messages] == ["error"]


def test_state_is_replaced_wholesale(client, session, notifications) -> None:
    session.add("GET", "task", DONE)
    session.add("GET", "task", {"status": "pending"})
    poller = TaskPoller(client, notifications)

    poller.refresh()
    assert poller.state.result == "**ok**"
    poller.refresh()

    assert poller.state == TaskState(status="pending")


def test_load_fetches_once(client, session, notifications) -> None:
    session.add("GET", "task", RUNNING)
    poller = TaskPoller(client, notifications)

    poller.load()
    poller.load()

    assert len(session.calls_to("GET", "task")) == 1


def test_progress_is_clamped() -> None:
    assert TaskState.from_payload({"progress": 140}).progress == 100
    assert TaskState.from_payload({"progress": "-3"}).progress == 0
    assert TaskState.from_payload({"progress": "n/a"}).progress == 0


def test_watch_stops_when_task_finishes(client, session, notifications) -> None:
    session.add("GET", "task", RUNNING)
    session.add("GET", "task", RUNNING)
    session.add("GET", "task", DONE)
    poller = TaskPoller(client, notifications)
    updates = []

    final = poller.watch(interval=0, on_update=lambda state: updates.append(state.status))

    assert updates == ["running", "running", "done"]
    assert final.status == "done"


def test_watch_stops_when_running_task_is_reset(client, session, notifications) -> None:
    session.add("GET", "task", RUNNING)
    session.add("GET", "task", {"status": "pending"})
    session.add("GET", "task", RUNNING)
    poller = TaskPoller(client, notifications)

    final = poller.watch(interval=0)

    assert final.status == "pending"
    assert len(session.calls_to("GET", "task")) == 2


def test_watch_stops_at_once_when_task_is_pending(client, session, notifications) -> None:
    session.add("GET", "task", {"status": "pending"})
    poller = TaskPoller(client, notifications)

    final = poller.watch(interval=0, max_polls=25)

    assert final.status == "pending"
    assert len(session.calls_to("GET", "task")) == 1


def test_watch_stops_on_failed_poll(client, session, notifications) -> None:
    session.add("GET", "task", RUNNING)
    session.add("GET", "task", {"message": "gone"}, status=500)
    poller = TaskPoller(client, notifications)

    final = poller.watch(interval=0)

    assert final.status == "running"
    assert len(session.calls_to("GET", "task")) == 2


def test_watch_is_cancellable(client, session, notifications) -> None:
    session.add("GET", "task", RUNNING)
    poller = TaskPoller(client, notifications)
    stop = threading.Event()

    poller.watch(interval=0, stop_event=stop, on_update=lambda state: stop.set())

    assert len(session.calls_to("GET", "task")) == 1


def test_watch_respects_max_polls(client, session, notifications) -> None:
    session.add("GET", "task", RUNNING)
    poller = TaskPoller(client, notifications)

    poller.watch(interval=0, max_polls=3)

    assert len(session.calls_to("GET", "task")) == 3
