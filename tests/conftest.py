from pathlib import Path
import sys
from typing import List, Optional

import pytest
from sqlmodel import Session, SQLModel, create_engine
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import models  # noqa: E402,F401  (registers tables)
from core.errors import ConflictError  # noqa: E402
from models.document import Document, seed_document  # noqa: E402
from services.github_client import ConnectivityResult, GitHubContentsClient  # noqa: E402
from storage.config import SyncConfig  # noqa: E402
from storage.local_store import LocalStore  # noqa: E402


CONFIG = SyncConfig(owner="acme", repo="ops-data", branch="main", path="data/db.json", token="ghp_test")


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None, reason=""):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self.reason = reason

    def json(self):
        if self._payload is None:
            raise ValueError("no body")
        return self._payload


class FakeSession:
    """Replays canned responses in order and records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        pass


class FakeRemote(GitHubContentsClient):
    """In-memory stand-in for the contents API with sha-guarded writes."""

    def __init__(self, config: SyncConfig = CONFIG, document: Optional[Document] = None):
        super().__init__(config)
        self.document = document
        self.sha: Optional[str] = "sha-0" if document is not None else None
        self.revision = 0
        self.writes: List[tuple] = []
        self.reads = 0
        self.probe_error: Optional[Exception] = None
        self.read_errors: List[Exception] = []
        # Errors raised by successive write() calls; ``None`` lets a call through.
        self.write_errors: List[Optional[Exception]] = []

    def probe(self, *, timeout=None):
        if self.probe_error is not None:
            raise self.probe_error
        return ConnectivityResult(owner=self.config.owner, repo=self.config.repo, default_branch="main")

    def read(self, *, timeout=None):
        self.reads += 1
        if self.read_errors:
            raise self.read_errors.pop(0)
        if self.document is None:
            return seed_document(), None
        return self.document.copy(), self.sha

    def write(self, document, token, message, *, timeout=None):
        if self.write_errors:
            error = self.write_errors.pop(0)
            if error is not None:
                raise error
        if token != self.sha:
            raise ConflictError("sha mismatch", status=409)
        self.revision += 1
        self.sha = f"sha-{self.revision}"
        self.document = document.copy()
        self.writes.append((message, document.copy(), token))
        return self.sha

    def push_remote_change(self, document: Document) -> None:
        """Simulate another client committing in between."""
        self.revision += 1
        self.sha = f"sha-{self.revision}"
        self.document = document.copy()


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)

    def factory():
        return Session(engine)

    return factory


@pytest.fixture()
def store(session_factory):
    return LocalStore(session_factory)


@pytest.fixture()
def remote():
    doc = seed_document()
    doc.tasks.append({"id": "task-001", "taskName": "Lắp thiết bị", "priority": "normal"})
    return FakeRemote(document=doc)


@pytest.fixture()
def config():
    return CONFIG
