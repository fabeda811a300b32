from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from agent_panel.api.agent_client import AgentClient
from agent_panel.sync.notifications import NotificationQueue

BASE_URL = "http://agent.test"


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text
        self.content = text.encode("utf-8")

    def json(self) -> Any:
        return json.loads(self.text)


@dataclass
class Call:
    method: str
    path: str
    params: Optional[Dict[str, Any]]
    json: Any


class FakeSession:
    """Stands in for `requests.Session`; responses are queued per (method, path)."""

    def __init__(self) -> None:
        self.calls: List[Call] = []
        self.closed = False
        self._routes: Dict[Tuple[str, str], List[Any]] = {}

    def add(
        self,
        method: str,
        path: str,
        payload: Any = None,
        *,
        status: int = 200,
        text: Optional[str] = None,
        error: Optional[Exception] = None,
        handler: Optional[Callable[[Call], FakeResponse]] = None,
    ) -> None:
        if error is not None:
            item: Any = error
        elif handler is not None:
            item = handler
        else:
            item = FakeResponse(status, payload, text)
        self._routes.setdefault((method.upper(), path), []).append(item)

    def request(self, method, url, params=None, json=None, timeout=None):
        path = url.split("/api/", 1)[1]
        call = Call(method.upper(), path, dict(params) if params else None, json)
        self.calls.append(call)
        queue = self._routes.get((call.method, path))
        if not queue:
            return FakeResponse(404, {"message": f"no route for {call.method} {path}"})
        item = queue[0] if len(queue) == 1 else queue.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(call)
        return item

    @staticmethod
    def response(status_code: int = 200, payload: Any = None, text: Optional[str] = None) -> FakeResponse:
        return FakeResponse(status_code, payload, text)

    def calls_to(self, method: str, path: str) -> List[Call]:
        return [call for call in self.calls if call.method == method and call.path == path]

    def close(self) -> None:
        self.closed = True


class ManualScheduler:
    """Records deferred callbacks instead of starting timers."""

    def __init__(self) -> None:
        self.pending: List[Tuple[float, Callable[[], None]]] = []

    def __call__(self, delay_s: float, callback: Callable[[], None]) -> None:
        self.pending.append((delay_s, callback))

    def run_all(self) -> None:
        pending, self.pending = self.pending, []
        for _, callback in pending:
            callback()


@pytest.fixture(autouse=True)
def _isolate_agent_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in (
        "AGENT_PANEL_BASE_URL",
        "AGENT_PANEL_HOST",
        "AGENT_PANEL_PORT",
        "AGENT_PANEL_API_PREFIX",
        "AGENT_PANEL_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def notifications(scheduler: ManualScheduler) -> NotificationQueue:
    return NotificationQueue(scheduler=scheduler)


@pytest.fixture
def client(session: FakeSession) -> AgentClient:
    return AgentClient(base_url=BASE_URL, session=session)
