from __future__ import annotations

import pytest

from agent_panel.api.agent_client import AgentClientError
from agent_panel.shared.data_types import TaskState
from agent_panel.sync.cached_request import (
    ERROR,
    LOADING,
    READY,
    UNINITIALIZED,
    CachedRequest,
    ResourceCache,
    resource_key,
)


def _unit(client, notifications, path="project", **kwargs) -> CachedRequest:
    return CachedRequest(client, path, notifications=notifications, clock=lambda: 100.0, **kwargs)


def test_successful_request_caches_data(client, session, notifications) -> None:
    session.add("GET", "project", {"project": {"name": "demo"}})
    unit = _unit(client, notifications)

    assert unit.state == UNINITIALIZED
    data = unit.request()

    assert data == {"project": {"name": "demo"}}
    assert unit.state == READY
    assert unit.view.loading is False
    assert unit.view.error is None
    assert unit.view.last_fetched_at == 100.0


def test_failed_request_keeps_previous_data(client, session, notifications) -> None:
    session.add("GET", "project", {"project": {"name": "demo"}})
    session.add("GET", "project", {"message": "index locked"}, status=500)
    unit = _unit(client, notifications)
    unit.request()

    with pytest.raises(AgentClientError):
        unit.request()

    assert unit.data == {"project": {"name": "demo"}}
    assert unit.error == "index locked"
    assert unit.loading is False
    assert unit.state == ERROR
    assert [(m.kind, m.description) for m in notifications.messages] == [("error", "index locked")]


def test_success_clears_previous_error(client, session, notifications) -> None:
    session.add("GET", "project", {"message": "down"}, status=503)
    session.add("GET", "project", {"project": {}})
    unit = _unit(client, notifications)

    with pytest.raises(AgentClientError):
        unit.request()
    unit.request()

    assert unit.error is None
    assert unit.state == READY


def test_loading_is_true_only_while_in_flight(client, session, notifications) -> None:
    observed = []
    unit = _unit(client, notifications)

    def _handler(call):
        observed.append((unit.loading, unit.state))
        return session.response(200, {"ok": True})

    session.add("GET", "project", handler=_handler)
    unit.request()

    assert observed == [(True, LOADING)]
    assert unit.loading is False


def test_hydrate_without_cache_is_noop(client, notifications) -> None:
    unit = _unit(client, notifications)
    before = unit.view

    unit.hydrate()

    assert unit.view == before
    assert unit.state == UNINITIALIZED


def test_hydrate_keeps_error_and_replays_cache(client, session, notifications) -> None:
    session.add("GET", "project", {"project": {"name": "demo"}})
    session.add("GET", "project", {"message": "down"}, status=503)
    unit = _unit(client, notifications)
    unit.request()
    with pytest.raises(AgentClientError):
        unit.request()
    calls_before = len(session.calls)

    unit.hydrate()

    assert len(session.calls) == calls_before
    assert unit.error == "down"
    assert unit.data == {"project": {"name": "demo"}}


def test_ensure_fetches_once_then_hydrates(client, session, notifications) -> None:
    session.add("GET", "project", {"project": {"name": "demo"}})
    unit = _unit(client, notifications)

    unit.ensure()
    unit.ensure()

    assert len(session.calls_to("GET", "project")) == 1


def test_invalidate_forces_refetch(client, session, notifications) -> None:
    session.add("GET", "project", {"project": {"name": "demo"}})
    unit = _unit(client, notifications)
    unit.ensure()

    unit.invalidate()
    unit.ensure()

    assert len(session.calls_to("GET", "project")) == 2


def test_transform_failure_goes_through_error_path(client, session, notifications) -> None:
    session.add("GET", "plan", {"plan": "not-a-list"})

    def _strict(payload):
        return [dict(item) for item in payload["plan"]]

    unit = _unit(client, notifications, path="plan", transform=_strict)

    with pytest.raises(AgentClientError, match="Malformed response"):
        unit.request()

    assert unit.data is None
    assert len(notifications.messages) == 1


def test_request_overrides(client, session, notifications) -> None:
    session.add("POST", "settings", {"theme": "dark"})
    unit = _unit(client, notifications, path="settings")

    unit.request(method="post", json={"theme": "dark", "persist": False})

    assert session.calls[-1].method == "POST"
    assert session.calls[-1].json == {"theme": "dark", "persist": False}


def test_resource_cache_hands_out_one_unit_per_identity(client, session, notifications) -> None:
    session.add("GET", "files", {"files": []})
    cache = ResourceCache(client, notifications)

    first = cache.unit("files")
    assert cache.unit("/files/") is first
    assert cache.unit("files", params={"name": "a.py"}) is not first
    assert resource_key("files", params={"name": "a.py"}) in cache

    cache.read("files")
    cache.read("files")
    cache.refresh("files")
    assert len(session.calls_to("GET", "files")) == 2

    cache.invalidate("files")
    cache.read("files")
    assert len(session.calls_to("GET", "files")) == 3


@pytest.mark.parametrize("body", [["not", "an", "object"], "plain text"])
def test_non_object_body_is_reported_not_raised_raw(client, session, notifications, body) -> None:
    session.add("GET", "task", body)
    unit = _unit(client, notifications, path="task", transform=TaskState.from_payload)

    with pytest.raises(AgentClientError, match="Malformed response"):
        unit.request()

    assert unit.loading is False
    assert unit.state == ERROR
    assert [m.kind for m in notifications.messages] == ["error"]


def test_fetch_hook_is_used_for_plain_requests(client, session, notifications) -> None:
    session.add("GET", "files", {"files": []})
    session.add("POST", "files", {})
    unit = _unit(client, notifications, path="files", fetch=lambda: {"files": ["via hook"]})

    assert unit.request() == {"files": ["via hook"]}
    unit.request(method="POST")

    assert session.calls_to("GET", "files") == []
    assert len(session.calls_to("POST", "files")) == 1
