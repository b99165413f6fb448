"""REST client for the code review server (Bitbucket Server / Stash API 1.0)."""

from __future__ import annotations

import base64
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional
from urllib.error import HTTPError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .auth import Auth
from .errors import ModBuildError
from .logging import get_logger

logger = get_logger("stash")

_PUSH_URL_PATTERN = re.compile(
    r"^ssh://git@(?P<host>[^/]+)/(?P<project>[^/]+)/(?P<repo>[^/]+)\.git$"
)


@dataclass(frozen=True)
class Server:
    host: str
    project: str
    repo: str

    @classmethod
    def from_push_url(cls, push_url: str) -> "Server":
        match = _PUSH_URL_PATTERN.match(push_url.strip())
        if match is None:
            logger.warning(
                "Can't get git origin remote info, please use git remote set-url origin ssh://... to set it up"
            )
            raise ModBuildError(f"No correct origin git remote url set: {push_url}")
        return cls(host=match["host"], project=match["project"], repo=match["repo"])

    @property
    def api_url(self) -> str:
        return f"https://{self.host}/rest/api/1.0"


@dataclass
class PullRequest:
    """A pull request as requested on the command line."""

    title: str
    description: str
    branch_name: str
    to_branch: str
    reviewers: List[str]


class _Project(BaseModel):
    key: str


class _Repository(BaseModel):
    slug: str
    name: Optional[str] = None
    project: _Project


class _Ref(BaseModel):
    id: str
    repository: _Repository


class _UserName(BaseModel):
    name: str


class _Reviewer(BaseModel):
    user: _UserName


class PullRequestPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: str
    state: str = "OPEN"
    open: bool = True
    closed: bool = False
    from_ref: _Ref = Field(alias="fromRef")
    to_ref: _Ref = Field(alias="toRef")
    locked: bool = False
    reviewers: List[_Reviewer] = Field(default_factory=list)

    @classmethod
    def build(cls, request: PullRequest, server: Server) -> "PullRequestPayload":
        def _ref(branch: str) -> _Ref:
            return _Ref(
                id=f"refs/heads/{branch}",
                repository=_Repository(slug=server.repo, project=_Project(key=server.project)),
            )

        return cls(
            title=request.title,
            description=request.description,
            from_ref=_ref(request.branch_name),
            to_ref=_ref(request.to_branch),
            reviewers=[_Reviewer(user=_UserName(name=name)) for name in split_reviewers(request.reviewers)],
        )


class User(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    display_name: str = Field(default="", alias="displayName")
    email: str = Field(default="", alias="emailAddress")


def split_reviewers(reviewers: Iterable[str]) -> List[str]:
    """Flatten reviewer entries separated by newlines or ``;``, dropping blanks and repeats."""
    names: List[str] = []
    for entry in reviewers:
        for line in entry.splitlines():
            for part in line.split(";"):
                name = part.strip()
                if name and name not in names:
                    names.append(name)
    return names


class StashClient:
    """Submits pull requests and looks up users on the review server."""

    def __init__(self, server: Server, auth: Auth, *, timeout: float = 30.0) -> None:
        self.server = server
        self.timeout = timeout
        credentials = ":".join(auth.as_tuple()).encode("utf-8")
        self._authorization = "Basic " + base64.b64encode(credentials).decode("ascii")

    def submit_pull_request(self, request: PullRequest) -> str:
        """Create the pull request and return its web URL."""
        logger.info("Creating the pull request")
        payload = PullRequestPayload.build(request, self.server)
        path = f"/projects/{self.server.project}/repos/{self.server.repo}/pull-requests"
        try:
            content = self._send("POST", path, payload=payload.model_dump(by_alias=True))
        except HTTPError as exc:
            raise ModBuildError(f"Request failed with status {exc.code}", exc) from exc
        url = _self_link(content)
        if url is None:
            raise ModBuildError("The pull request response has no link")
        logger.info("Pull request %s is created!", url)
        return url

    def find_users(self, query: str) -> List[User]:
        """Return users whose name, display name or email contains ``query``."""
        logger.info("Query users: %s", query)
        try:
            content = self._send("GET", "/users", params={"filter": query})
        except HTTPError as exc:
            logger.info("No user found by filter %s (status %s)", query, exc.code)
            return []
        try:
            users = [User.model_validate(value) for value in content.get("values", [])]
        except (AttributeError, ValidationError) as exc:
            raise ModBuildError("Can't parse response with json type", exc) from exc
        logger.debug("Users returned: %s", users)
        return users

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.server.api_url}{path}"
        if params:
            url = f"{url}?{urlencode(params)}"
        headers = {"Accept": "application/json", "Authorization": self._authorization}
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        logger.debug("Sending %s request to %s", method, url)

        http_request = Request(url, data=data, headers=headers, method=method)
        try:
            with urlopen(http_request, timeout=self.timeout) as response:  # type: ignore[arg-type]
                raw = response.read()
        except HTTPError:
            raise
        except OSError as exc:
            raise ModBuildError(f"Request to {url} failed", exc) from exc

        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ModBuildError("Can't parse response with json type", exc) from exc


def _self_link(content: Any) -> Optional[str]:
    try:
        href = content["links"]["self"][0]["href"]
    except (KeyError, IndexError, TypeError):
        return None
    return str(href) if href else None


__all__ = [
    "PullRequest",
    "PullRequestPayload",
    "Server",
    "StashClient",
    "User",
    "split_reviewers",
]
