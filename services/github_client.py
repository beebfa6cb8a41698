"""Thin client for the GitHub contents API holding the shared document."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import requests

from core.errors import (
    AuthError,
    CodecError,
    ConflictError,
    NetworkError,
    NotFoundError,
    SyncError,
)
from core.settings import GITHUB
from models.document import Document, seed_document
from services import codec
from storage.config import SyncConfig


logger = logging.getLogger("tracker.sync.github")

_CONFLICT_STATUS = {409, 412}


@dataclass(frozen=True)
class ConnectivityResult:
    owner: str
    repo: str
    default_branch: Optional[str] = None
    private: Optional[bool] = None


def _rate_limited(response: requests.Response) -> bool:
    return response.headers.get("X-RateLimit-Remaining") == "0"


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    detail = body.get("message") if isinstance(body, dict) else None
    return f"GitHub API error: {response.status_code} {detail or response.reason or ''}".strip()


class GitHubContentsClient:
    """Reads and writes one JSON file through ``/repos/{owner}/{repo}/contents``.

    No retries happen here; every failure is raised as a tagged
    :class:`~core.errors.SyncError` so the sync engine decides what to do.
    """

    def __init__(
        self,
        config: SyncConfig,
        *,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        api_url: Optional[str] = None,
    ) -> None:
        self.config = config
        self.timeout = float(timeout if timeout is not None else GITHUB.timeout_sec)
        self.api_url = (api_url or GITHUB.api_url).rstrip("/")
        self._session = session

    # ------------------------------------------------------------------
    # Public API
    def probe(self, *, timeout: Optional[float] = None) -> ConnectivityResult:
        response = self._request("GET", self._repo_url(), timeout=timeout)
        if response.status_code == 404:
            raise NotFoundError(
                f"Repository {self.config.owner}/{self.config.repo} not found", status=404
            )
        self._raise_for_status(response)
        data = self._json(response)
        owner = data.get("owner") or {}
        return ConnectivityResult(
            owner=owner.get("login") or self.config.owner,
            repo=data.get("name") or self.config.repo,
            default_branch=data.get("default_branch"),
            private=data.get("private"),
        )

    def read(self, *, timeout: Optional[float] = None) -> Tuple[Document, Optional[str]]:
        response = self._request(
            "GET",
            self._contents_url(),
            params={"ref": self.config.branch},
            timeout=timeout,
        )
        if response.status_code == 404:
            logger.info("Data file %s not found, using seed document", self.config.path)
            return seed_document(), None
        self._raise_for_status(response)
        data = self._json(response)
        if data.get("encoding") == "none" or (not data.get("content") and data.get("size")):
            # Files over 1 MB come back without inline content.
            raise CodecError(
                f"Data file {self.config.path} is {data.get('size')} bytes, "
                "too large for the contents API"
            )
        document = codec.decode(data.get("content") or "")
        return document, data.get("sha")

    def write(
        self,
        document: Document,
        token: Optional[str],
        message: str,
        *,
        timeout: Optional[float] = None,
    ) -> str:
        body: Dict[str, Any] = {
            "message": message,
            "content": codec.encode(document).decode("ascii"),
            "branch": self.config.branch,
        }
        if token:
            body["sha"] = token
        response = self._request("PUT", self._contents_url(), json=body, timeout=timeout)
        if response.status_code in _CONFLICT_STATUS:
            raise ConflictError(_error_message(response), status=response.status_code)
        if response.status_code == 422 and not token:
            # Creating the file lost a race with another client.
            raise ConflictError(_error_message(response), status=422)
        if response.status_code == 404:
            raise NotFoundError(_error_message(response), status=404)
        self._raise_for_status(response)
        data = self._json(response)
        new_token = (data.get("content") or {}).get("sha")
        if not new_token:
            raise SyncError("GitHub response did not include a content sha", status=response.status_code)
        return new_token

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    # ------------------------------------------------------------------
    # HTTP helpers
    @property
    def session(self) -> requests.Session:
        if self._session is None:
            session = requests.Session()
            session.headers.update(
                {
                    "Accept": GITHUB.accept,
                    "User-Agent": GITHUB.user_agent,
                }
            )
            self._session = session
        return self._session

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"token {self.config.token}"}

    def _repo_url(self) -> str:
        owner = quote(self.config.owner, safe="")
        repo = quote(self.config.repo, safe="")
        return f"{self.api_url}/repos/{owner}/{repo}"

    def _contents_url(self) -> str:
        path = quote(self.config.path.strip("/"), safe="/")
        return f"{self._repo_url()}/contents/{path}"

    def _request(self, method: str, url: str, *, timeout: Optional[float] = None, **kwargs) -> requests.Response:
        effective = self.timeout if timeout is None else timeout
        try:
            return self.session.request(
                method,
                url,
                headers=self._headers(),
                timeout=effective,
                **kwargs,
            )
        except requests.Timeout as exc:
            raise NetworkError(f"GitHub request timed out after {effective:g}s") from exc
        except requests.RequestException as exc:
            raise NetworkError(f"GitHub request failed: {exc}") from exc

    @staticmethod
    def _raise_for_status(response: requests.Response) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        message = _error_message(response)
        if status == 401:
            raise AuthError(message, status=status)
        if status == 403:
            if _rate_limited(response):
                raise NetworkError(f"{message} (rate limit exceeded)", status=status)
            raise AuthError(message, status=status)
        if status == 404:
            raise NotFoundError(message, status=status)
        if status in _CONFLICT_STATUS:
            raise ConflictError(message, status=status)
        raise NetworkError(message, status=status)

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise NetworkError(f"GitHub returned a non-JSON body ({exc})", status=response.status_code) from exc
        return data if isinstance(data, dict) else {}


__all__ = ["ConnectivityResult", "GitHubContentsClient"]
