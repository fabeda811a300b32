"""
Client-side helper for talking to the agent service.

The agent exposes a small JSON API under a constant prefix (``/api`` by
default). This module provides a lightweight wrapper that:
  * Discovers the agent host/port from the environment or a `.env` file.
  * Reuses a `requests.Session` for efficiency.
  * Exposes one method per agent endpoint (files, tree, index, project,
    task, plan, settings).
  * Turns every non-2xx response or transport failure into `AgentClientError`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlparse, urlunparse

import requests
from dotenv import find_dotenv, load_dotenv

from agent_panel.utils.logger import StructuredLogger

JsonDict = Dict[str, Any]

_BASE_URL_ENV_VAR = "AGENT_PANEL_BASE_URL"
_HOST_ENV_VAR = "AGENT_PANEL_HOST"
_PORT_ENV_VAR = "AGENT_PANEL_PORT"
_PREFIX_ENV_VAR = "AGENT_PANEL_API_PREFIX"
_TIMEOUT_ENV_VAR = "AGENT_PANEL_TIMEOUT"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000
DEFAULT_API_PREFIX = "/api"
DEFAULT_TIMEOUT = 30.0
GENERIC_ERROR_MESSAGE = "Request failed"


class AgentClientError(RuntimeError):
    """Raised when the agent cannot be reached or answers with a non-2xx status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, payload: Optional[Any] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload

    @property
    def message(self) -> str:
        """Human-readable message, preferring the one supplied by the server."""
        if isinstance(self.payload, dict):
            for key in ("message", "error", "detail"):
                value = self.payload.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
        return str(self) or GENERIC_ERROR_MESSAGE


def describe_error(exc: BaseException) -> str:
    """Single line suitable for a notification body."""
    if isinstance(exc, AgentClientError):
        return exc.message
    return str(exc) or GENERIC_ERROR_MESSAGE


def _load_dotenv(explicit_path: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """
    Load environment variables from a `.env` file without overriding the process env.

    Returns the path that was loaded (if any).
    """
    if explicit_path:
        dot_path = Path(explicit_path).expanduser().resolve()
        if dot_path.is_file():
            load_dotenv(dot_path, override=False)
            return dot_path
        return None

    found = find_dotenv(usecwd=True)
    if found:
        load_dotenv(found, override=False)
        return Path(found)
    return None


def _normalize_base_url(host: Optional[str], port: Optional[Union[str, int]], *, scheme: str = "http") -> str:
    """
    Build a normalized base URL from separate host/port values.
    """
    clean_host = host or DEFAULT_HOST
    clean_port = str(port or DEFAULT_PORT)
    parsed = urlparse(clean_host if "://" in clean_host else f"{scheme}://{clean_host}")
    netloc = parsed.netloc or parsed.path
    if ":" not in netloc and clean_port:
        netloc = f"{netloc}:{clean_port}"
    return urlunparse((parsed.scheme or scheme, netloc, "", "", "", ""))


def _normalize_prefix(prefix: Optional[str]) -> str:
    value = (prefix if prefix is not None else DEFAULT_API_PREFIX).strip().strip("/")
    return f"/{value}" if value else ""


@dataclass
class AgentClient:
    """
    High-level client wrapper for the agent HTTP API.

    Parameters:
        base_url: Optional manual override (e.g., "http://10.0.0.5:8000").
        host: Overrides env-derived host when provided.
        port: Overrides env-derived port when provided.
        api_prefix: Logical prefix shared by every endpoint ("/api").
        timeout: Default request timeout (seconds) applied to each call.
        dotenv_path: Optional path to the `.env` file that provides host/port.
        session: Optional existing `requests.Session` to reuse.
    """

    base_url: Optional[str] = None
    host: Optional[str] = None
    port: Optional[Union[str, int]] = None
    api_prefix: Optional[str] = None
    timeout: Optional[float] = None
    dotenv_path: Optional[Union[str, Path]] = None
    session: Optional[requests.Session] = None

    def __post_init__(self) -> None:
        _load_dotenv(self.dotenv_path)
        self._logger = StructuredLogger(__name__)

        if self.base_url:
            if "://" not in self.base_url:
                self.base_url = f"http://{self.base_url}"
        else:
            env_base = os.getenv(_BASE_URL_ENV_VAR)
            resolved_host = self.host or os.getenv(_HOST_ENV_VAR)
            resolved_port = self.port or os.getenv(_PORT_ENV_VAR)

            if env_base and not (resolved_host or resolved_port):
                base_url = env_base.strip()
                if "://" not in base_url:
                    base_url = f"http://{base_url}"
                self.base_url = base_url
            else:
                self.base_url = _normalize_base_url(resolved_host, resolved_port)
        self.base_url = self.base_url.rstrip("/")

        self.api_prefix = _normalize_prefix(
            self.api_prefix if self.api_prefix is not None else os.getenv(_PREFIX_ENV_VAR)
        )
        if self.timeout is None:
            env_timeout = os.getenv(_TIMEOUT_ENV_VAR)
            self.timeout = float(env_timeout) if env_timeout else DEFAULT_TIMEOUT

        self._session = self.session or requests.Session()

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{self.api_prefix}/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Optional[Any] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        url = self.url_for(path)
        self._logger.debug(f"{method} {url} params={dict(params or {})}")
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json,
                timeout=timeout or self.timeout,
            )
        except requests.RequestException as exc:
            raise AgentClientError(str(exc) or "Network Error") from exc

        status = response.status_code
        if not 200 <= status < 300:
            raise AgentClientError(
                f"Request failed with status code {status}",
                status_code=status,
                payload=_safe_json(response),
            )
        return response

    def request_json(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Optional[Any] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Issue a call against `<base_url><prefix>/<path>` and decode the JSON body.

        An empty body decodes to an empty dict.
        """
        response = self._request(method, path, params=params, json=json, timeout=timeout)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise AgentClientError(
                f"Agent returned a non-JSON body for {path}",
                status_code=response.status_code,
                payload=response.text,
            ) from exc

    # ------------------------------------------------------------------ #
    # Public api methods
    # ------------------------------------------------------------------ #

    def list_files(self, name: Optional[str] = None) -> JsonDict:
        """
        List indexed files (`GET files`), optionally narrowed by `name`.
        """
        params = {"name": name} if name else None
        return self.request_json("GET", "files", params=params)

    def file_content(self, path: str) -> str:
        """
        Fetch the content of one file by relative path (`GET files?name=`).
        """
        payload = self.request_json("GET", "files", params={"name": path})
        content = payload.get("content") if isinstance(payload, dict) else None
        return content if isinstance(content, str) else ""

    def file_tree(self) -> JsonDict:
        """
        Fetch the hierarchical file index (`GET tree`).
        """
        return self.request_json("GET", "tree")

    def trigger_index(self) -> JsonDict:
        """
        Ask the agent to (re)index the project (`POST index`).
        """
        return self.request_json("POST", "index")

    def project_summary(self) -> JsonDict:
        """
        Retrieve project metadata and task statistics (`GET project`).
        """
        return self.request_json("GET", "project")

    def get_task(self) -> JsonDict:
        """
        Retrieve the current task state (`GET task`).
        """
        return self.request_json("GET", "task")

    def submit_task(self, description: str) -> JsonDict:
        """
        Start a new task (`POST task` with a description).
        """
        return self.request_json("POST", "task", json={"description": description})

    def cancel_task(self) -> JsonDict:
        """
        Cancel the running task (`POST task` with `cancel: true`).
        """
        return self.request_json("POST", "task", json={"cancel": True})

    def get_plan(self) -> JsonDict:
        """
        Retrieve the development plan (`GET plan`).
        """
        return self.request_json("GET", "plan")

    def upsert_plan_item(self, item: JsonDict) -> JsonDict:
        """
        Create or update a plan item (`POST plan`); the agent decides by `id`.
        """
        return self.request_json("POST", "plan", json=item)

    def get_settings(self) -> JsonDict:
        """
        Retrieve agent settings (`GET settings`).
        """
        return self.request_json("GET", "settings")

    def set_settings(self, settings: Mapping[str, Any], *, persist: bool = False) -> JsonDict:
        """
        Update agent settings (`POST settings`), optionally persisting them.
        """
        payload: JsonDict = dict(settings)
        payload["persist"] = persist
        return self.request_json("POST", "settings", json=payload)

    # ------------------------------------------------------------------ #
    # Context management / utility
    # ------------------------------------------------------------------ #

    def close(self) -> None:
        """Close the underlying session."""
        self._session.close()

    def __enter__(self) -> "AgentClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _safe_json(response: requests.Response) -> Optional[Any]:
    try:
        return response.json()
    except ValueError:
        return response.text


__all__ = ["AgentClient", "AgentClientError", "describe_error"]
