"""
GitLab client for projects and their sharing documents.

Uses the GitLab REST API (v4) to list the projects of a group, walk a
project's repository tree at a given ref, and download single files.
File contents arrive base64 encoded and are decoded on request.

Prerequisites:
- GITLAB_TOKEN environment variable (or an explicit token) with
  read_api + read_repository scope
- Network access to the GitLab instance
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from pydantic import BaseModel, Field

from .models import GitlabProject

logger = logging.getLogger("configanalyzer.gitlab")

PER_PAGE = 100


class GitlabApiError(RuntimeError):
    """A GitLab API call failed.

    Attributes:
        status_code: HTTP status, or None for transport errors.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class GitlabGroup(BaseModel):
    """A GitLab group with the projects it contains."""

    id: int
    name: str
    path: str = ""
    full_path: str = ""
    description: Optional[str] = None
    web_url: Optional[str] = None
    projects: List[GitlabProject] = Field(default_factory=list)


class TreeEntry(BaseModel):
    """One entry of a repository tree listing."""

    id: str
    name: str
    type: str
    path: str
    mode: str = ""

    @property
    def is_file(self) -> bool:
        return self.type == "blob"


class GitlabFile(BaseModel):
    """A repository file as returned by the files API."""

    file_name: str
    file_path: str
    size: int = 0
    encoding: str = "base64"
    content: str
    content_sha256: str = ""
    ref: str = ""
    blob_id: str = ""
    commit_id: str = ""
    last_commit_id: str = ""
    execute_filemode: bool = False

    def decoded_content(self) -> str:
        """The file's text content.

        Raises:
            ValueError: If the content is not valid base64-encoded UTF-8.
        """
        if self.encoding != "base64":
            return self.content
        try:
            return base64.b64decode(self.content, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ValueError(f"Cannot decode {self.file_path}: {exc}") from exc


class GitlabClient:
    """Minimal read-only GitLab API client.

    Args:
        url: Instance URL (e.g. 'https://gitlab.example.com').
        token: Private or group access token. Defaults to $GITLAB_TOKEN.
        timeout: Per-request timeout in seconds.
        session: Optional pre-configured ``requests.Session``.
    """

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._token = token or os.environ.get("GITLAB_TOKEN", "")
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def url(self) -> str:
        return self._url

    def _api_call(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        """Make an authenticated GET request.

        Args:
            endpoint: API path below /api/v4.
            params: Query parameters.

        Returns:
            The response, with a status below 400.

        Raises:
            GitlabApiError: On transport failure or an error status.
        """
        url = f"{self._url}/api/v4{endpoint}"
        headers = {"PRIVATE-TOKEN": self._token} if self._token else {}

        try:
            resp = self._session.get(url, headers=headers, params=params, timeout=self._timeout)
        except requests.RequestException as exc:
            raise GitlabApiError(f"GitLab API GET {endpoint} failed: {exc}") from exc

        if resp.status_code >= 400:
            raise GitlabApiError(
                f"GitLab API GET {endpoint} failed: {resp.status_code} {resp.text}",
                status_code=resp.status_code,
            )
        return resp

    def _paginate(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> List[Any]:
        """Collect every page of a list endpoint."""
        items: List[Any] = []
        page: Optional[str] = "1"
        while page:
            query = dict(params or {}, per_page=PER_PAGE, page=page)
            resp = self._api_call(endpoint, query)
            items.extend(resp.json())
            page = resp.headers.get("X-Next-Page") or None
        return items

    def get_group(self, group: str) -> GitlabGroup:
        """Fetch a group (by id or full path) and all of its projects."""
        encoded = quote(str(group), safe="")
        data = self._api_call(f"/groups/{encoded}").json()
        projects = self._paginate(f"/groups/{encoded}/projects", {"include_subgroups": "true"})
        data["projects"] = projects
        result = GitlabGroup.model_validate(data)
        logger.info("Group %s: %d project(s)", result.full_path or result.name, len(result.projects))
        return result

    def list_tree(self, project_id: int, ref: str = "main", recursive: bool = True) -> List[TreeEntry]:
        """List a project's repository tree at ``ref``."""
        raw = self._paginate(
            f"/projects/{project_id}/repository/tree",
            {"ref": ref, "recursive": "true" if recursive else "false"},
        )
        return [TreeEntry.model_validate(entry) for entry in raw]

    def get_file(self, project_id: int, path: str, ref: str = "main") -> GitlabFile:
        """Download one repository file at ``ref``."""
        encoded = quote(path, safe="")
        data = self._api_call(
            f"/projects/{project_id}/repository/files/{encoded}", {"ref": ref},
        ).json()
        return GitlabFile.model_validate(data)

