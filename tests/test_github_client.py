
import pytest
import requests

from core.errors import AuthError, CodecError, ConflictError, NetworkError, NotFoundError
from models.document import seed_document
from services import codec
from services.github_client import GitHubContentsClient

from conftest import FakeResponse, FakeSession


def _client(config, *responses):
    session = FakeSession(*responses)
    return GitHubContentsClient(config, session=session, timeout=5), session


def test_probe_returns_repository_info(config):
    client, session = _client(
        config,
        FakeResponse(200, {"name": "ops-data", "owner": {"login": "acme"}, "default_branch": "main", "private": True}),
    )
    result = client.probe()
    assert (result.owner, result.repo, result.private) == ("acme", "ops-data", True)
    method, url, kwargs = session.calls[0]
    assert url == "https://api.github.com/repos/acme/ops-data"
    assert kwargs["headers"]["Authorization"] == "token ghp_test"
    assert kwargs["timeout"] == 5


@pytest.mark.parametrize(
    "status, headers, error",
    [
        (401, {}, AuthError),
        (403, {}, AuthError),
        (403, {"X-RateLimit-Remaining": "0"}, NetworkError),
        (404, {}, NotFoundError),
        (500, {}, NetworkError),
    ],
)
def test_probe_maps_status_codes(config, status, headers, error):
    client, _ = _client(config, FakeResponse(status, {"message": "nope"}, headers))
    with pytest.raises(error) as info:
        client.probe()
    assert info.value.status == status


def test_read_missing_file_returns_seed_without_token(config):
    client, session = _client(config, FakeResponse(404, {"message": "Not Found"}))
    document, token = client.read()
    assert token is None
    assert document.users == seed_document().users
    assert document.tasks == []
    assert session.calls[0][2]["params"] == {"ref": "main"}
    assert session.calls[0][1].endswith("/repos/acme/ops-data/contents/data/db.json")


def test_read_decodes_wrapped_content(config):
    doc = seed_document()
    doc.tasks.append({"id": "t1", "taskName": "Lắp thiết bị cho The Tresor"})
    encoded = codec.encode(doc).decode("ascii")
    wrapped = "\n".join(encoded[i : i + 60] for i in range(0, len(encoded), 60))
    client, _ = _client(config, FakeResponse(200, {"content": wrapped, "sha": "abc123", "encoding": "base64"}))
    document, token = client.read()
    assert token == "abc123"
    assert document == doc


def test_read_with_corrupt_content_raises_codec_error(config):
    client, _ = _client(config, FakeResponse(200, {"content": "%%%", "sha": "abc"}))
    with pytest.raises(CodecError):
        client.read()


def test_write_sends_sha_and_returns_new_token(config):
    client, session = _client(config, FakeResponse(200, {"content": {"sha": "new-sha"}, "commit": {}}))
    token = client.write(seed_document(), "old-sha", "Created task: X by Liam")
    assert token == "new-sha"
    method, _, kwargs = session.calls[0]
    assert method == "PUT"
    body = kwargs["json"]
    assert body["sha"] == "old-sha"
    assert body["branch"] == "main"
    assert body["message"] == "Created task: X by Liam"
    assert codec.decode(body["content"]).users == seed_document().users


def test_initial_write_omits_sha(config):
    client, session = _client(config, FakeResponse(201, {"content": {"sha": "first"}}))
    assert client.write(seed_document(), None, "init") == "first"
    assert "sha" not in session.calls[0][2]["json"]


@pytest.mark.parametrize("status", [409, 412])
def test_write_conflict(config, status):
    client, _ = _client(config, FakeResponse(status, {"message": "does not match"}))
    with pytest.raises(ConflictError):
        client.write(seed_document(), "stale", "msg")


def test_create_race_is_a_conflict(config):
    client, _ = _client(config, FakeResponse(422, {"message": "sha wasn't supplied"}))
    with pytest.raises(ConflictError):
        client.write(seed_document(), None, "msg")


def test_unprocessable_update_is_not_a_conflict(config):
    client, _ = _client(config, FakeResponse(422, {"message": "invalid"}))
    with pytest.raises(NetworkError):
        client.write(seed_document(), "sha", "msg")


def test_write_with_bad_credential(config):
    client, _ = _client(config, FakeResponse(401, {"message": "Bad credentials"}))
    with pytest.raises(AuthError):
        client.write(seed_document(), "sha", "msg")


@pytest.mark.parametrize(
    "exc",
    [requests.Timeout("slow"), requests.ConnectionError("offline")],
)
def test_transport_failures_become_network_errors(config, exc):
    client, _ = _client(config, exc)
    with pytest.raises(NetworkError):
        client.read(timeout=0.01)


def test_per_call_timeout_overrides_default(config):
    client, session = _client(config, FakeResponse(404, {}))
    client.read(timeout=1.5)
    assert session.calls[0][2]["timeout"] == 1.5


def test_path_is_url_quoted(config):
    client, session = _client(config.with_changes(path="/data/my db.json"), FakeResponse(404, {}))
    client.read()
    assert session.calls[0][1].endswith("/contents/data/my%20db.json")


def test_non_json_body_is_network_error(config):
    client, _ = _client(config, FakeResponse(200, None))
    with pytest.raises(NetworkError):
        client.probe()


def test_read_oversized_file_reports_size(config):
    client, _ = _client(
        config,
        FakeResponse(200, {"content": "", "encoding": "none", "size": 1_500_000, "sha": "big"}),
    )
    with pytest.raises(CodecError, match="1500000 bytes"):
        client.read()
