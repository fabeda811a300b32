"""
Tracks the single long-running agent task.

`TaskPoller` wraps a `CachedRequest` on the `task` endpoint. Each successful
poll replaces the whole `TaskState`; progress and log are passed through as
received. Refresh is explicit (user action or right after submit/cancel);
`watch()` adds an opt-in timed loop for running tasks.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from agent_panel.api.agent_client import AgentClient, AgentClientError, describe_error
from agent_panel.shared.data_types import TaskState
from agent_panel.shared.validation import ValidationError, validate_task_description
from agent_panel.sync.cached_request import CachedRequest
from agent_panel.sync.notifications import NotificationQueue
from agent_panel.utils.logger import StructuredLogger

DEFAULT_WATCH_INTERVAL = 2.0


class TaskPoller:
    """
    Client-side state machine for the remote task.

    Remote states: pending -> running -> {done, failed}; running -> pending is
    possible after a cancel. A fresh submit may leave any state.
    """

    def __init__(self, client: AgentClient, notifications: NotificationQueue) -> None:
        self._client = client
        self._notifications = notifications
        self._unit: CachedRequest[TaskState] = CachedRequest(
            client,
            "task",
            notifications=notifications,
            transform=TaskState.from_payload,
            fetch=client.get_task,
        )
        self._logger = StructuredLogger(__name__)
        self.input = ""
        self.submitting = False

    @property
    def state(self) -> TaskState:
        return self._unit.data or TaskState()

    @property
    def resource(self) -> CachedRequest[TaskState]:
        return self._unit

    @property
    def error(self) -> Optional[str]:
        return self._unit.error

    def load(self) -> None:
        """Fetch on first use, otherwise replay the last known state."""
        if self._unit.has_cache:
            self._unit.hydrate()
        else:
            self.refresh()

    def refresh(self) -> bool:
        """
        Re-fetch the task state. Failures are reported by the cached request
        and never propagate; returns whether the poll succeeded.
        """
        try:
            self._unit.request()
        except AgentClientError:
            return False
        return True

    def submit(self, description: Optional[str] = None) -> bool:
        """
        Start a task from `description` (or the pending `input`).

        A blank description is rejected locally with one error notification
        and no network call.
        """
        raw = self.input if description is None else description
        try:
            normalized = validate_task_description(raw)
        except ValidationError as exc:
            self._notifications.error(exc.title, exc.description)
            return False

        self.submitting = True
        try:
            self._client.submit_task(normalized)
        except AgentClientError as exc:
            self._notifications.error("Task was not started", describe_error(exc))
            return False
        finally:
            self.submitting = False

        self._logger.info(f"Task submitted: {normalized}")
        self._notifications.success("Task started", "The agent has started working on it.")
        self.input = ""
        self.refresh()
        return True

    def cancel(self) -> bool:
        """Ask the agent to cancel; the refreshed state decides what happened."""
        try:
            self._client.cancel_task()
        except AgentClientError as exc:
            self._notifications.error("Cancel failed", describe_error(exc))
            return False
        self._logger.info("Task cancel requested.")
        self._notifications.success("Cancelled")
        self.refresh()
        return True

    def watch(
        self,
        *,
        interval: float = DEFAULT_WATCH_INTERVAL,
        stop_event: Optional[threading.Event] = None,
        on_update: Optional[Callable[[TaskState], None]] = None,
        max_polls: Optional[int] = None,
    ) -> TaskState:
        """
        Poll while the task is running.

        Stops on the first poll whose status is not `running` (finished, or
        pending because nothing was started or it was cancelled), when a poll
        fails, after `max_polls` polls, or when `stop_event` is set. Returns
        the last known state.
        """
        stop = stop_event if stop_event is not None else threading.Event()
        polls = 0
        while not stop.is_set():
            if not self.refresh():
                break
            polls += 1
            state = self.state
            if on_update is not None:
                on_update(state)
            if not state.is_running:
                outcome = "finished" if state.is_finished else "not running"
                self._logger.info(f"Task {outcome}: {state.status}")
                break
            if max_polls is not None and polls >= max_polls:
                break
            stop.wait(interval)
        return self.state


__all__ = ["DEFAULT_WATCH_INTERVAL", "TaskPoller"]
