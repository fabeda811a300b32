"""Client view over the agent's ordered development plan."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, List, Optional

from agent_panel.api.agent_client import AgentClient, AgentClientError, describe_error
from agent_panel.shared.data_types import JsonDict, PlanItem
from agent_panel.shared.validation import ValidationError, validate_plan_filter, validate_plan_item
from agent_panel.sync.cached_request import CachedRequest
from agent_panel.sync.notifications import NotificationQueue
from agent_panel.utils.logger import StructuredLogger


def parse_plan(payload: Any) -> List[PlanItem]:
    items = (payload or {}).get("plan") or []
    return [PlanItem.from_payload(item) for item in items]


def filter_plan(items: List[PlanItem], status_filter: str = "all") -> List[PlanItem]:
    """Pure, order-preserving status filter; "all" returns every item."""
    if status_filter == "all":
        return list(items)
    return [item for item in items if item.status == status_filter]


def empty_draft() -> PlanItem:
    return PlanItem(title="", priority="medium", status="planned")


class PlanStore:
    """
    CRUD-style view of the remote plan.

    The agent assigns ids and decides whether a post creates or updates an
    item (an `id` in the draft signals an update by convention).
    """

    def __init__(self, client: AgentClient, notifications: NotificationQueue) -> None:
        self._client = client
        self._notifications = notifications
        self._unit: CachedRequest[List[PlanItem]] = CachedRequest(
            client,
            "plan",
            notifications=notifications,
            transform=parse_plan,
            fetch=client.get_plan,
        )
        self._logger = StructuredLogger(__name__)
        self.draft = empty_draft()
        self.saving = False

    @property
    def items(self) -> List[PlanItem]:
        return list(self._unit.data or [])

    @property
    def resource(self) -> CachedRequest[List[PlanItem]]:
        return self._unit

    def load(self, *, force: bool = False) -> bool:
        """Fetch the collection (or hydrate from cache); failures are reported, not raised."""
        try:
            if force or not self._unit.has_cache:
                items = self._unit.request()
                self._logger.info_lines(
                    f"Plan loaded: {len(items)} item(s)",
                    (f"[{item.status}] {item.title}" for item in items),
                )
            else:
                self._unit.hydrate()
        except AgentClientError:
            return False
        return True

    def list(self, status_filter: str = "all") -> List[PlanItem]:
        return filter_plan(self.items, validate_plan_filter(status_filter))

    def edit(self, item: PlanItem) -> PlanItem:
        """Copy an existing item into the draft so `save()` updates it."""
        self.draft = replace(item)
        return self.draft

    def save(self, item: Optional[PlanItem] = None) -> bool:
        """
        Post the draft (or `item`) to the agent.

        Rejected locally, with one error notification, when the title is blank.
        On success the draft is reset and the collection reloaded.
        """
        draft = self.draft if item is None else item
        try:
            validate_plan_item(draft)
        except ValidationError as exc:
            self._notifications.error(exc.title, exc.description)
            return False

        payload: JsonDict = draft.to_payload()
        payload["title"] = draft.title.strip()
        self.saving = True
        try:
            self._client.upsert_plan_item(payload)
        except AgentClientError as exc:
            self._notifications.error("Plan item not saved", describe_error(exc))
            return False
        finally:
            self.saving = False

        self._logger.info(f"Plan item saved: {payload['title']}")
        self.draft = empty_draft()
        self.load(force=True)
        self._notifications.success("Saved")
        return True


__all__ = ["PlanStore", "empty_draft", "filter_plan", "parse_plan"]
