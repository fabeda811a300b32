"""
Wiring of the control panel tabs.

`AgentPanel` builds one stateful component per tab on top of a shared
`AgentClient` and an explicitly injected `NotificationQueue`. Tabs share no
other mutable state.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from agent_panel.api.agent_client import AgentClient, AgentClientError, describe_error
from agent_panel.shared.data_types import ProjectSummary
from agent_panel.shared.validation import ValidationError, coerce_settings
from agent_panel.sync.cached_request import CachedRequest, ResourceCache
from agent_panel.sync.file_browser import FileTreeBrowser
from agent_panel.sync.notifications import NotificationQueue
from agent_panel.sync.plan_store import PlanStore
from agent_panel.sync.task_poller import TaskPoller
from agent_panel.utils.logger import StructuredLogger

TABS = (
    ("files", "Files"),
    ("summary", "Summary"),
    ("task", "Task"),
    ("plan", "Plan"),
)


class AgentPanel:
    """
    Facade over every tab of the control panel.

    Parameters:
        client: Agent client; built from the environment when omitted.
        notifications: Shared queue; a fresh one is created when omitted.
    """

    def __init__(
        self,
        client: Optional[AgentClient] = None,
        *,
        notifications: Optional[NotificationQueue] = None,
    ) -> None:
        self.client = client if client is not None else AgentClient()
        # An empty queue is falsy (it defines __len__).
        self.notifications = notifications if notifications is not None else NotificationQueue()
        self._logger = StructuredLogger(__name__)
        self.resources = ResourceCache(self.client, self.notifications)

        self.files = FileTreeBrowser(self.client, self.notifications)
        self.task = TaskPoller(self.client, self.notifications)
        self.plan = PlanStore(self.client, self.notifications)
        self.active_tab = TABS[0][0]

    # ------------------------------------------------------------------ #
    # Summary / settings resources
    # ------------------------------------------------------------------ #

    @property
    def summary_resource(self) -> CachedRequest[ProjectSummary]:
        return self.resources.unit(
            "project",
            transform=ProjectSummary.from_payload,
            fetch=self.client.project_summary,
        )

    @property
    def settings_resource(self) -> CachedRequest[Dict[str, Any]]:
        return self.resources.unit("settings", transform=dict, fetch=self.client.get_settings)

    def summary(self, *, refresh: bool = False) -> Optional[ProjectSummary]:
        unit = self.summary_resource
        try:
            return unit.request() if refresh else unit.ensure()
        except AgentClientError:
            return None

    def settings(self, *, refresh: bool = False) -> Optional[Dict[str, Any]]:
        unit = self.settings_resource
        try:
            return unit.request() if refresh else unit.ensure()
        except AgentClientError:
            return None

    def update_settings(self, updates: Mapping[str, Any], *, persist: bool = False) -> Optional[Dict[str, Any]]:
        """
        Merge `updates` over the known settings, coerce values and post them.
        Returns the echoed settings, or None when rejected or failed.
        """
        current = self.settings() or {}
        try:
            merged = coerce_settings(updates, current)
        except ValidationError as exc:
            self.notifications.error(exc.title, exc.description)
            return None
        try:
            echoed = self.client.set_settings(merged, persist=persist)
        except AgentClientError as exc:
            self.notifications.error("Settings not saved", describe_error(exc))
            return None
        self.resources.invalidate("settings")
        self.notifications.success("Settings saved", "Persisted to disk" if persist else "Applied for this session")
        return echoed

    # ------------------------------------------------------------------ #
    # Tabs
    # ------------------------------------------------------------------ #

    def open_tab(self, tab: str) -> None:
        """Switch tabs and run the tab's fetch-or-hydrate entry transition."""
        known = {tab_id for tab_id, _ in TABS}
        if tab not in known:
            raise ValueError(f"Unknown tab {tab!r}; expected one of {sorted(known)}.")
        self.active_tab = tab
        self._logger.debug(f"Opening tab {tab}")
        if tab == "files":
            self.files.activate()
        elif tab == "summary":
            self.summary()
        elif tab == "task":
            self.task.load()
        elif tab == "plan":
            self.plan.load()

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "AgentPanel":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["AgentPanel", "TABS"]
