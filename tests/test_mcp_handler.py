import json

import pytest

from oauth.jwt_utils import create_access_token, create_refresh_token
from tools import TOOLS

from conftest import ALLOWED_EMAIL, BASE_URL, JWT_SECRET


@pytest.fixture
def auth_headers():
    token = create_access_token(ALLOWED_EMAIL, JWT_SECRET, issuer=BASE_URL)
    return {"Authorization": f"Bearer {token}"}


def _rpc(client, headers, method, params=None, path="/mcp", message_id=1):
    message = {"jsonrpc": "2.0", "id": message_id, "method": method}
    if params is not None:
        message["params"] = params
    return client.post(path, json=message, headers=headers)


def test_missing_bearer_is_unauthorized(client):
    response = client.post("/mcp", json={"jsonrpc": "2.0", "id": 1, "method": "initialize"})
    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized"
    assert "resource_metadata" in response.headers["www-authenticate"]


def test_wrong_scheme_is_unauthorized(client):
    response = client.post("/", json={}, headers={"Authorization": "Basic abc"})
    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized"


def test_refresh_token_is_rejected_as_access_token(client):
    token = create_refresh_token(ALLOWED_EMAIL, JWT_SECRET, issuer=BASE_URL)
    response = _rpc(client, {"Authorization": f"Bearer {token}"}, "initialize")
    assert response.status_code == 401
    assert response.json()["error"] == "invalid_token"


def test_expired_access_token_is_rejected(client):
    token = create_access_token(ALLOWED_EMAIL, JWT_SECRET, issuer=BASE_URL, expires_in=-60)
    response = _rpc(client, {"Authorization": f"Bearer {token}"}, "initialize")
    assert response.status_code == 401
    assert response.json()["error"] == "invalid_token"


def test_garbage_token_is_rejected(client):
    response = _rpc(client, {"Authorization": "Bearer not-a-jwt"}, "initialize")
    assert response.status_code == 401
    assert response.json()["error"] == "invalid_token"


def test_health_and_landing_need_no_token(client):
    assert client.get("/health").json() == {"status": "ok"}
    landing = client.get("/")
    assert landing.status_code == 200
    assert f"{BASE_URL}/mcp" in landing.text


def test_initialize(client, auth_headers):
    for path in ("/", "/mcp"):
        response = _rpc(client, auth_headers, "initialize", path=path, message_id=7)
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == 7
        assert body["result"]["protocolVersion"] == "2024-11-05"
        assert body["result"]["capabilities"] == {"tools": {}}
        assert body["result"]["serverInfo"]["name"] == "github-mcp-server"


def test_tools_list_returns_catalog(client, auth_headers):
    tools = _rpc(client, auth_headers, "tools/list").json()["result"]["tools"]

    assert [t["name"] for t in tools] == list(TOOLS)
    create_issue = next(t for t in tools if t["name"] == "create_issue")
    assert create_issue["inputSchema"]["required"] == ["repo", "title"]
    assert {"name", "description", "inputSchema"} <= set(create_issue)


def test_unknown_tool_is_method_not_found(client, auth_headers):
    for arguments in ({}, {"repo": "x"}, None):
        params = {"name": "delete_everything"}
        if arguments is not None:
            params["arguments"] = arguments
        body = _rpc(client, auth_headers, "tools/call", params).json()
        assert body["error"]["code"] == -32601
        assert "delete_everything" in body["error"]["message"]


def test_unknown_method(client, auth_headers):
    body = _rpc(client, auth_headers, "resources/list").json()
    assert body["error"] == {"code": -32601, "message": "Method not found"}


def test_notification_gets_no_body(client, auth_headers):
    response = client.post(
        "/mcp",
        json={"jsonrpc": "2.0", "method": "notifications/initialized"},
        headers=auth_headers,
    )
    assert response.status_code == 202
    assert response.content == b""


def test_malformed_body_is_internal_error(client, auth_headers):
    response = client.post(
        "/mcp",
        content=b"{not json",
        headers={**auth_headers, "Content-Type": "application/json"},
    )
    assert response.status_code == 500
    assert response.json()["error"] == {"code": -32603, "message": "Internal error"}


def test_missing_required_argument_is_tool_error(client, auth_headers, fake_github):
    body = _rpc(client, auth_headers, "tools/call", {"name": "create_issue", "arguments": {"repo": "r"}}).json()

    assert body["error"]["code"] == -32000
    assert "title" in body["error"]["message"]
    assert fake_github.requests == []


def test_github_failure_is_tool_error(client, auth_headers, fake_github):
    fake_github.route("GET", "/repos/octo/r/issues/5", {"message": "Not Found"}, status_code=404)

    body = _rpc(
        client, auth_headers, "tools/call",
        {"name": "get_issue", "arguments": {"repo": "r", "issue_number": 5}},
    ).json()

    assert body["error"] == {"code": -32000, "message": "Not Found"}


def test_create_issue_defaults_labels(client, auth_headers, fake_github):
    fake_github.route("POST", "/repos/octo/r/issues", {
        "number": 12,
        "html_url": "https://github.com/octo/r/issues/12",
        "title": "Do it",
        "state": "open",
    }, status_code=201)

    body = _rpc(
        client, auth_headers, "tools/call",
        {"name": "create_issue", "arguments": {"repo": "r", "title": "Do it"}},
    ).json()

    assert fake_github.last_json() == {"title": "Do it", "body": "", "labels": ["claude-task"]}
    content = body["result"]["content"]
    assert content[0]["type"] == "text"
    assert json.loads(content[0]["text"]) == {
        "number": 12,
        "url": "https://github.com/octo/r/issues/12",
        "title": "Do it",
        "state": "open",
    }


def test_create_issue_keeps_given_labels(client, auth_headers, fake_github):
    fake_github.route("POST", "/repos/octo/r/issues", {"number": 1}, status_code=201)

    _rpc(
        client, auth_headers, "tools/call",
        {"name": "create_issue", "arguments": {"repo": "r", "title": "t", "labels": ["bug"]}},
    )

    assert fake_github.last_json()["labels"] == ["bug"]


def test_create_issue_keeps_explicit_empty_labels(client, auth_headers, fake_github):
    fake_github.route("POST", "/repos/octo/r/issues", {"number": 1}, status_code=201)

    _rpc(
        client, auth_headers, "tools/call",
        {"name": "create_issue", "arguments": {"repo": "r", "title": "t", "labels": []}},
    )

    assert fake_github.last_json()["labels"] == []
