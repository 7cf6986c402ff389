from __future__ import annotations

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from mailcount.clients import gmail
from mailcount.clients.google_auth import GoogleOAuthClient, OAuthTokenExchangeError
from mailcount.models.oauth import ClientSecretDocument, CredentialRecord
from mailcount.services.token_refresh import TokenRefreshPolicy

SECRET = ClientSecretDocument(client_id="client-id", client_secret="client-secret")
SCOPES = ("https://www.googleapis.com/auth/gmail.readonly",)


@pytest.fixture()
def token_endpoint(monkeypatch: pytest.MonkeyPatch):
    requests: list[httpx.Request] = []
    responses: list[httpx.Response] = []
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return responses.pop(0)

    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )
    return requests, responses


def test_authorization_url_requests_offline_consent() -> None:
    client = GoogleOAuthClient(SECRET, SCOPES)

    url = client.build_authorization_url("state-123", redirect_uri="http://localhost:8888/")
    query = parse_qs(urlparse(url).query)

    assert url.startswith(SECRET.auth_uri)
    assert query["state"] == ["state-123"]
    assert query["redirect_uri"] == ["http://localhost:8888/"]
    assert query["access_type"] == ["offline"]
    assert query["prompt"] == ["consent"]
    assert query["scope"] == [" ".join(SCOPES)]


@pytest.mark.asyncio
async def test_exchange_authorization_code_builds_record(token_endpoint) -> None:
    requests, responses = token_endpoint
    responses.append(
        httpx.Response(
            200,
            json={
                "access_token": "access",
                "refresh_token": "refresh",
                "expires_in": 3599,
                "scope": SCOPES[0],
                "token_type": "Bearer",
            },
        )
    )

    record = await GoogleOAuthClient(SECRET, SCOPES).exchange_authorization_code(
        "code-1", redirect_uri="http://localhost:8888/"
    )

    assert record.access_token == "access"
    assert record.refresh_token == "refresh"
    assert record.scopes == SCOPES
    assert record.remaining() > timedelta(minutes=59)
    body = parse_qs(requests[0].content.decode())
    assert body["grant_type"] == ["authorization_code"]
    assert body["code"] == ["code-1"]


@pytest.mark.asyncio
async def test_refresh_token_returns_rotated_value(token_endpoint) -> None:
    _, responses = token_endpoint
    responses.append(
        httpx.Response(
            200, json={"access_token": "new", "expires_in": 3600, "refresh_token": "r2"}
        )
    )

    result = await GoogleOAuthClient(SECRET, SCOPES).refresh_token("r1")

    assert result == ("new", 3600, "r2")


@pytest.mark.asyncio
async def test_token_endpoint_errors_raise(token_endpoint) -> None:
    _, responses = token_endpoint
    responses.append(httpx.Response(400, json={"error": "invalid_grant"}))

    with pytest.raises(OAuthTokenExchangeError):
        await GoogleOAuthClient(SECRET, SCOPES).refresh_token("revoked")


def test_build_google_credentials_uses_naive_utc_expiry() -> None:
    expires_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    record = CredentialRecord(
        access_token="access", refresh_token="refresh", expires_at=expires_at, scopes=SCOPES
    )

    credentials = gmail.build_google_credentials(record, SECRET, SCOPES)

    assert credentials.token == "access"
    assert credentials.refresh_token == "refresh"
    assert credentials.client_id == "client-id"
    assert credentials.expiry == datetime(2024, 5, 1, 12, 0)


class FakeRequest:
    def __init__(self, payload: dict) -> None:
        self.payload = payload

    def execute(self) -> dict:
        return self.payload


class FakeMessages:
    def __init__(self) -> None:
        self.calls: list[dict] = []

    def list(self, **kwargs) -> FakeRequest:
        self.calls.append(kwargs)
        return FakeRequest({"messages": [{"id": "1"}], "nextPageToken": "next"})


class FakeService:
    def __init__(self) -> None:
        self.messages_resource = FakeMessages()
        self.closed = False

    def users(self) -> "FakeService":
        return self

    def messages(self) -> FakeMessages:
        return self.messages_resource

    def close(self) -> None:
        self.closed = True


def test_session_lists_one_page_and_closes(monkeypatch: pytest.MonkeyPatch) -> None:
    service = FakeService()
    built: list[dict] = []

    def fake_build(name, version, **kwargs):
        built.append({"name": name, "version": version, **kwargs})
        return service

    monkeypatch.setattr(gmail, "build", fake_build)

    with gmail.GmailClientSession(credentials=object()) as session:
        page = session.list_messages(query="from:a@example.com", page_token="t1", max_results=500)

    assert page["nextPageToken"] == "next"
    assert built[0]["name"] == "gmail" and built[0]["cache_discovery"] is False
    call = service.messages_resource.calls[0]
    assert call["userId"] == "me"
    assert call["q"] == "from:a@example.com"
    assert call["pageToken"] == "t1"
    assert call["maxResults"] == 500
    assert service.closed


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>proxy</html>"),
        httpx.Response(200, json=["not", "an", "object"]),
        httpx.Response(200, json={"access_token": "new", "expires_in": "soon"}),
        httpx.Response(200, json={"access_token": 42, "expires_in": 3600}),
    ],
)
async def test_malformed_refresh_payloads_raise_exchange_error(token_endpoint, response) -> None:
    _, responses = token_endpoint
    responses.append(response)

    with pytest.raises(OAuthTokenExchangeError):
        await GoogleOAuthClient(SECRET, SCOPES).refresh_token("r1")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>proxy</html>"),
        httpx.Response(200, json=[1, 2]),
        httpx.Response(200, json={"access_token": "a", "expires_in": "soon"}),
        httpx.Response(200, json={"access_token": "a", "expires_in": 60, "scope": 7}),
    ],
)
async def test_malformed_code_exchange_payloads_raise_exchange_error(
    token_endpoint, response
) -> None:
    _, responses = token_endpoint
    responses.append(response)

    with pytest.raises(OAuthTokenExchangeError):
        await GoogleOAuthClient(SECRET, SCOPES).exchange_authorization_code(
            "code-1", redirect_uri="http://localhost:8888/"
        )


@pytest.mark.asyncio
async def test_non_json_refresh_response_leads_to_reauthorization(token_endpoint) -> None:
    _, responses = token_endpoint
    responses.append(httpx.Response(200, text="<html>proxy</html>"))
    record = CredentialRecord(
        access_token="old",
        refresh_token="r1",
        expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
    )

    result = await TokenRefreshPolicy().refresh(record, GoogleOAuthClient(SECRET, SCOPES))

    assert result is None


class StubController:
    def __init__(self, record: CredentialRecord) -> None:
        self.record = record

    async def get_authorized_credentials(self):
        return self.record, SECRET


@pytest.mark.asyncio
async def test_session_factory_uses_secret_from_controller(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    built: list[object] = []

    def fake_build(name, version, **kwargs):
        built.append(kwargs["credentials"])
        return FakeService()

    monkeypatch.setattr(gmail, "build", fake_build)
    record = CredentialRecord(access_token="access", refresh_token="refresh", scopes=SCOPES)

    session = await gmail.GmailSessionFactory(StubController(record), scopes=SCOPES).open()
    session.close()

    assert built[0].client_id == "client-id"
    assert built[0].token == "access"
