"""
Helpers for presenting file content fetched from the agent.

Markdown files are shown as-is; anything else is wrapped in a fenced code
block tagged with the language guessed from its extension so a Markdown
renderer can highlight it.
"""

from __future__ import annotations

from typing import Dict

LANGUAGE_BY_EXTENSION: Dict[str, str] = {
    "js": "javascript",
    "jsx": "jsx",
    "ts": "typescript",
    "tsx": "tsx",
    "py": "python",
    "rb": "ruby",
    "rs": "rust",
    "go": "go",
    "cpp": "cpp",
    "cc": "cpp",
    "cxx": "cpp",
    "c": "c",
    "h": "c",
    "java": "java",
    "cs": "csharp",
    "php": "php",
    "sh": "bash",
    "bash": "bash",
    "ps1": "powershell",
    "json": "json",
    "yml": "yaml",
    "yaml": "yaml",
    "md": "markdown",
    "html": "html",
    "css": "css",
}


def extension_of(path: str) -> str:
    name = (path or "").rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def language_for(path: str) -> str:
    """Highlighting language for `path`, or "" when unknown."""
    return LANGUAGE_BY_EXTENSION.get(extension_of(path), "")


def is_markdown(path: str) -> bool:
    return extension_of(path) == "md"


def to_markdown(content: str, path: str) -> str:
    if is_markdown(path):
        return content
    return f"```{language_for(path)}\n{content}\n```"


__all__ = ["LANGUAGE_BY_EXTENSION", "extension_of", "is_markdown", "language_for", "to_markdown"]
