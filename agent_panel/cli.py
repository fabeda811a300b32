"""
Command line front end for the agent panel.

Each command builds an `AgentPanel`, runs one action, prints the
notifications it produced and exits non-zero when any of them was an error.
"""

from __future__ import annotations

import json
from typing import List, Optional, Sequence, Set

import typer
from rich import print
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table
from rich.tree import Tree

from agent_panel.api.agent_client import AgentClient
from agent_panel.shared.data_types import PLAN_FILTERS, PLAN_PRIORITIES, PLAN_STATUSES, FileTreeNode, Notification, PlanItem, TaskState
from agent_panel.shared.validation import ValidationError, validate_choice
from agent_panel.sync.file_browser import TREE_MODE
from agent_panel.sync.notifications import NotificationQueue
from agent_panel.sync.panel import AgentPanel
from agent_panel.utils.content_render import to_markdown
from agent_panel.utils.logger import configure_logging

app = typer.Typer(help="agent-panel: control panel for a remote agent")
task_app = typer.Typer(help="Submit, cancel and follow the agent task")
plan_app = typer.Typer(help="Maintain the development plan")
settings_app = typer.Typer(help="Read and update agent settings")
app.add_typer(task_app, name="task")
app.add_typer(plan_app, name="plan")
app.add_typer(settings_app, name="settings")

console = Console()

TASK_STATUS_STYLES = {
    "pending": ("Pending", "yellow"),
    "running": ("Running", "cyan"),
    "done": ("Done", "green"),
    "failed": ("Failed", "red"),
}
PRIORITY_STYLES = {
    "high": "red",
    "medium": "yellow",
    "low": "green",
}


class _NotificationLog:
    """Collects every notification pushed while a command runs, even expired ones."""

    def __init__(self, queue: NotificationQueue) -> None:
        self.items: List[Notification] = []
        self._seen: Set[str] = set()
        self._unsubscribe = queue.subscribe(self._on_change)

    def _on_change(self, live: List[Notification]) -> None:
        for message in live:
            if message.id not in self._seen:
                self._seen.add(message.id)
                self.items.append(message)

    @property
    def has_errors(self) -> bool:
        return any(item.is_error for item in self.items)

    def close(self) -> None:
        self._unsubscribe()


def build_panel(base_url: Optional[str]) -> AgentPanel:
    return AgentPanel(AgentClient(base_url=base_url))


def _panel(ctx: typer.Context) -> AgentPanel:
    return ctx.obj["panel"]


def _check_choice(label: str, value: str, choices: Sequence[str]) -> None:
    try:
        validate_choice(label, value, choices)
    except ValidationError as exc:
        print(f"[red]{exc.description}[/red]")
        raise typer.Exit(code=2) from None


def _finish(ctx: typer.Context) -> None:
    log: _NotificationLog = ctx.obj["log"]
    log.close()
    for item in log.items:
        color = "red" if item.is_error else "green"
        line = f"[{color}]{item.title}[/{color}]"
        if item.description:
            line = f"{line}: {item.description}"
        print(line)
    _panel(ctx).close()
    if log.has_errors:
        raise typer.Exit(code=1)


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Agent base URL (defaults to env / .env)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Talk to the agent service over its HTTP API."""
    configure_logging(verbose)
    panel = build_panel(base_url)
    ctx.obj = {"panel": panel, "log": _NotificationLog(panel.notifications)}


# ---------------------------------------------------------------------- #
# Files
# ---------------------------------------------------------------------- #


def _tree_branch(parent: Tree, node: FileTreeNode, panel: AgentPanel) -> None:
    for child in node.children:
        if child.is_dir:
            branch = parent.add(f"[bold]{child.name}/[/bold]")
            if panel.files.is_expanded(child.path):
                _tree_branch(branch, child, panel)
        else:
            label = child.name
            if child.description:
                label = f"{label} [dim]- {child.description}[/dim]"
            parent.add(label)


@app.command("files")
def files_cmd(
    ctx: typer.Context,
    filter_text: str = typer.Option("", "--filter", "-f", help="Substring filter for the flat list"),
    collapse: List[str] = typer.Option([], "--collapse", help="Directory path to show collapsed"),
) -> None:
    """Show the project files (tree, or flat list when no tree is available)."""
    panel = _panel(ctx)
    mode = panel.files.activate()
    if mode == TREE_MODE and panel.files.tree is not None:
        for path in collapse:
            node = panel.files.find_node(path)
            if node is None or not node.is_dir:
                print(f"[yellow]No directory {path!r} in the tree[/yellow]")
            elif panel.files.is_expanded(path):
                panel.files.toggle(path)
        root = panel.files.tree
        tree = Tree(f"[bold]{root.name or '/'}[/bold]")
        _tree_branch(tree, root, panel)
        console.print(tree)
    else:
        table = Table(title="Files")
        table.add_column("Name")
        table.add_column("Description")
        table.add_column("Modified")
        entries = panel.files.set_filter(filter_text)
        for entry in entries:
            table.add_row(entry.name, entry.description or "", entry.modified or "")
        if entries:
            console.print(table)
        else:
            print("[dim]No files found[/dim]")
    _finish(ctx)


@app.command("show")
def show_cmd(ctx: typer.Context, path: str = typer.Argument(..., help="Relative file path")) -> None:
    """Print a file, highlighted by extension."""
    panel = _panel(ctx)
    content = panel.files.select(path)
    if content:
        console.print(Markdown(to_markdown(content, path)))
    else:
        print("[dim]No content.[/dim]")
    _finish(ctx)


@app.command("index")
def index_cmd(ctx: typer.Context) -> None:
    """Ask the agent to re-index the project."""
    result = _panel(ctx).files.trigger_index()
    if result:
        print(f"indexed={result.get('indexed', '-')} remaining={result.get('remaining', '-')}")
    _finish(ctx)


# ---------------------------------------------------------------------- #
# Summary
# ---------------------------------------------------------------------- #


@app.command("summary")
def summary_cmd(ctx: typer.Context) -> None:
    """Show project metadata and task statistics."""
    summary = _panel(ctx).summary(refresh=True)
    if summary is not None:
        table = Table(title="Project", show_header=False)
        table.add_row("Name", str(summary.metadata("name")))
        table.add_row("Indexed files", str(summary.metadata("fileCount")))
        table.add_row("Size", str(summary.metadata("size")))
        table.add_row("Last indexed", str(summary.metadata("lastIndexed")))
        console.print(table)
        stats = Table(title="Tasks")
        for label in ("Active", "Completed", "Pending", "Failed"):
            stats.add_column(label)
        counts = summary.stats
        stats.add_row(
            *[
                "-" if value is None else str(value)
                for value in (counts.active, counts.completed, counts.pending, counts.failed)
            ]
        )
        console.print(stats)
    _finish(ctx)


# ---------------------------------------------------------------------- #
# Task
# ---------------------------------------------------------------------- #


def _status_label(status: str) -> str:
    label, color = TASK_STATUS_STYLES.get(status, (status, "white"))
    return f"[{color}]{label}[/{color}]"


def _render_task(state: TaskState) -> None:
    print(f"Description: {state.description or '-'}")
    print(f"Status: {_status_label(state.status)}")
    print(f"Progress: {state.progress}%")
    print(f"Updated: {state.updated_at or '-'}")
    print("Log:")
    console.print(state.log or "No logs yet.", markup=False, highlight=False)
    if state.result:
        print("Result:")
        console.print(Markdown(state.result))


@task_app.command("status")
def task_status_cmd(ctx: typer.Context) -> None:
    """Show the current task."""
    task = _panel(ctx).task
    if task.refresh():
        _render_task(task.state)
    _finish(ctx)


@task_app.command("submit")
def task_submit_cmd(ctx: typer.Context, description: str = typer.Argument("", help="What the agent should do")) -> None:
    """Start a new task."""
    task = _panel(ctx).task
    if task.submit(description):
        _render_task(task.state)
    _finish(ctx)


@task_app.command("cancel")
def task_cancel_cmd(ctx: typer.Context) -> None:
    """Cancel the running task."""
    task = _panel(ctx).task
    if task.cancel():
        _render_task(task.state)
    _finish(ctx)


@task_app.command("watch")
def task_watch_cmd(
    ctx: typer.Context,
    interval: float = typer.Option(2.0, "--interval", help="Seconds between polls"),
    max_polls: Optional[int] = typer.Option(None, "--max-polls", help="Stop after this many polls"),
) -> None:
    """Poll the task until it leaves the running state."""
    task = _panel(ctx).task

    def _on_update(state: TaskState) -> None:
        print(f"{_status_label(state.status)} {state.progress}%")

    try:
        state = task.watch(interval=interval, on_update=_on_update, max_polls=max_polls)
    except KeyboardInterrupt:
        state = task.state
    _render_task(state)
    _finish(ctx)


# ---------------------------------------------------------------------- #
# Plan
# ---------------------------------------------------------------------- #


@plan_app.command("list")
def plan_list_cmd(
    ctx: typer.Context,
    status: str = typer.Option("all", "--status", help=f"One of: {', '.join(PLAN_FILTERS)}"),
) -> None:
    """List plan items, optionally filtered by status."""
    plan = _panel(ctx).plan
    _check_choice("filter", status, PLAN_FILTERS)
    if plan.load():
        items = plan.list(status)
        if not items:
            print("[dim]No plan items.[/dim]")
        for item in items:
            color = PRIORITY_STYLES.get(item.priority, "white")
            ident = f" [dim](ID: {item.id})[/dim]" if item.id else ""
            print(f"{item.title}{ident} [{color}]{item.priority}[/{color}] {item.status}")
    _finish(ctx)


@plan_app.command("add")
def plan_add_cmd(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Plan item title"),
    priority: str = typer.Option("medium", "--priority", help=f"One of: {', '.join(PLAN_PRIORITIES)}"),
    status: str = typer.Option("planned", "--status", help=f"One of: {', '.join(PLAN_STATUSES)}"),
    item_id: Optional[str] = typer.Option(None, "--id", help="Existing item id (updates instead of creating)"),
) -> None:
    """Create a plan item, or update one when --id is given."""
    _check_choice("priority", priority, PLAN_PRIORITIES)
    _check_choice("status", status, PLAN_STATUSES)
    plan = _panel(ctx).plan
    plan.save(PlanItem(title=title, priority=priority, status=status, id=item_id))
    _finish(ctx)


# ---------------------------------------------------------------------- #
# Settings
# ---------------------------------------------------------------------- #


@settings_app.command("show")
def settings_show_cmd(ctx: typer.Context) -> None:
    """Print the agent settings as JSON."""
    settings = _panel(ctx).settings(refresh=True)
    if settings is not None:
        print(json.dumps(settings, indent=2, ensure_ascii=False))
    _finish(ctx)


@settings_app.command("set")
def settings_set_cmd(
    ctx: typer.Context,
    assignments: List[str] = typer.Argument(..., help="KEY=VALUE pairs"),
    persist: bool = typer.Option(False, "--persist", help="Ask the agent to write settings to disk"),
) -> None:
    """Update settings; values are coerced to the type of the current value."""
    updates = {}
    for assignment in assignments:
        key, sep, value = assignment.partition("=")
        if not sep or not key.strip():
            print(f"[red]Expected KEY=VALUE, got {assignment!r}[/red]")
            raise typer.Exit(code=2)
        updates[key.strip()] = value
    echoed = _panel(ctx).update_settings(updates, persist=persist)
    if echoed is not None:
        print(json.dumps(echoed, indent=2, ensure_ascii=False))
    _finish(ctx)


if __name__ == "__main__":
    app()
