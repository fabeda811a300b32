"""
Lazy browser over the agent's file index.

On first activation the browser asks for the hierarchical tree. If that
fails for any reason it switches, for its whole lifetime, to the flat file
list (no notification, the degrade is silent). File content is fetched on
demand per selected path.
"""

from __future__ import annotations

from typing import Any, Iterator, List, Optional, Set, Tuple

from agent_panel.api.agent_client import AgentClient, AgentClientError, describe_error
from agent_panel.shared.data_types import FileEntry, FileTreeNode
from agent_panel.sync.cached_request import CachedRequest
from agent_panel.sync.notifications import NotificationQueue
from agent_panel.utils.logger import StructuredLogger

TREE_MODE = "tree"
LIST_MODE = "list"


def parse_files(payload: Any) -> List[FileEntry]:
    files = (payload or {}).get("files") or []
    return [FileEntry.from_payload(entry) for entry in files]


def filter_files(entries: List[FileEntry], text: str) -> List[FileEntry]:
    """Case-insensitive substring match on names, preserving order."""
    needle = (text or "").lower()
    return [entry for entry in entries if needle in entry.name.lower()]


def walk_tree(node: FileTreeNode, depth: int = 0) -> Iterator[Tuple[int, FileTreeNode]]:
    yield depth, node
    for child in node.children:
        yield from walk_tree(child, depth + 1)


class FileTreeBrowser:
    """
    Files tab state: tree or flat list, per-directory collapse state and
    the content pane of the selected file.
    """

    def __init__(self, client: AgentClient, notifications: NotificationQueue) -> None:
        self._client = client
        self._notifications = notifications
        self._files: CachedRequest[List[FileEntry]] = CachedRequest(
            client,
            "files",
            notifications=notifications,
            transform=parse_files,
            fetch=client.list_files,
        )
        self._logger = StructuredLogger(__name__)
        self._collapsed: Set[str] = set()
        self._content_token = 0

        self.mode: Optional[str] = None
        self.tree: Optional[FileTreeNode] = None
        self.filter_text = ""
        self.selected_path = ""
        self.content = ""
        self.content_loading = False

    # ------------------------------------------------------------------ #
    # Activation
    # ------------------------------------------------------------------ #

    def activate(self) -> str:
        """
        Resolve the view mode on first call; later calls only replay caches.
        Returns the active mode.
        """
        if self.mode is None:
            self.tree = self._fetch_tree()
            if self.tree is not None:
                self.mode = TREE_MODE
            else:
                self.mode = LIST_MODE
        if self.mode == LIST_MODE:
            self.load_files()
        return self.mode

    def _fetch_tree(self) -> Optional[FileTreeNode]:
        try:
            payload = self._client.file_tree()
            root = payload.get("root") if isinstance(payload, dict) else None
            if not root:
                raise ValueError("tree response has no root")
            return FileTreeNode.from_payload(root)
        except (AgentClientError, ValueError, TypeError, AttributeError) as exc:
            self._logger.debug(f"Tree unavailable, using flat list: {exc}")
            return None

    # ------------------------------------------------------------------ #
    # Flat list
    # ------------------------------------------------------------------ #

    @property
    def files(self) -> List[FileEntry]:
        return list(self._files.data or [])

    def load_files(self, *, force: bool = False) -> bool:
        """Load the flat list once (or on `force`); failures are reported, not raised."""
        try:
            if force:
                self._files.request()
            else:
                self._files.ensure()
        except AgentClientError:
            return False
        return True

    def set_filter(self, text: str) -> List[FileEntry]:
        self.filter_text = text or ""
        return self.filtered_files()

    def filtered_files(self) -> List[FileEntry]:
        return filter_files(self.files, self.filter_text)

    # ------------------------------------------------------------------ #
    # Tree
    # ------------------------------------------------------------------ #

    def is_expanded(self, path: str) -> bool:
        return path not in self._collapsed

    def toggle(self, path: str) -> bool:
        """Flip the collapse state of one directory; returns the new expanded flag."""
        if path in self._collapsed:
            self._collapsed.discard(path)
            return True
        self._collapsed.add(path)
        return False

    def visible_nodes(self) -> List[Tuple[int, FileTreeNode]]:
        """Depth-annotated nodes shown given the current collapse state."""
        rows: List[Tuple[int, FileTreeNode]] = []
        if self.tree is None:
            return rows

        def _visit(node: FileTreeNode, depth: int) -> None:
            rows.append((depth, node))
            if node.is_dir and self.is_expanded(node.path):
                for child in node.children:
                    _visit(child, depth + 1)

        _visit(self.tree, 0)
        return rows

    def find_node(self, path: str) -> Optional[FileTreeNode]:
        if self.tree is None:
            return None
        for _, node in walk_tree(self.tree):
            if node.path == path:
                return node
        return None

    # ------------------------------------------------------------------ #
    # Content pane / actions
    # ------------------------------------------------------------------ #

    def select(self, path: str) -> str:
        """
        Fetch the content of `path` into the content pane.

        The previous content is cleared before the call. A response for a
        selection that has since been superseded is discarded.
        """
        self._content_token += 1
        token = self._content_token
        self.selected_path = path
        self.content = ""
        self.content_loading = True
        try:
            content = self._client.file_content(path)
        except AgentClientError as exc:
            self._notifications.error("Error", describe_error(exc))
            content = ""
        finally:
            if token == self._content_token:
                self.content_loading = False

        if token != self._content_token:
            self._logger.debug(f"Discarding stale content for {path}")
            return self.content
        self.content = content
        return content

    def trigger_index(self) -> Optional[dict]:
        """Start re-indexing; the current list is not refreshed automatically."""
        try:
            result = self._client.trigger_index()
        except AgentClientError as exc:
            self._notifications.error("Indexing failed", describe_error(exc))
            return None
        self._notifications.success("Indexing", "Started in the background")
        return result


__all__ = [
    "FileTreeBrowser",
    "LIST_MODE",
    "TREE_MODE",
    "filter_files",
    "parse_files",
    "walk_tree",
]
