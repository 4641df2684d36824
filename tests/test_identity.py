from urllib.parse import parse_qs, urlparse

import pytest

from slack_search_proxy.errors import IdentityResolutionError, UpstreamAuthError
from slack_search_proxy.identity import USER_SCOPES, IdentityResolver

from tests.conftest import USER_TOKEN


@pytest.fixture
def resolver(settings, slack_client):
    return IdentityResolver(settings, slack_client)


@pytest.mark.asyncio
async def test_resolve_returns_identity_and_user_token(resolver, fake_slack, identity):
    resolved, token = await resolver.resolve("code-1", "https://chat.example/callback")

    assert resolved == identity
    assert token == USER_TOKEN
    assert fake_slack.methods() == ["oauth.v2.access", "auth.test"]
    exchange = fake_slack.calls[0]["data"]
    assert exchange == {
        "code": "code-1",
        "client_id": "client-id",
        "client_secret": "client-secret",
        "redirect_uri": "https://chat.example/callback",
    }
    assert fake_slack.calls[1]["authorization"] == f"Bearer {USER_TOKEN}"


@pytest.mark.asyncio
async def test_failed_exchange_surfaces_slack_payload_without_retry(resolver, fake_slack):
    fake_slack.responses["oauth.v2.access"] = {"ok": False, "error": "invalid_code"}

    with pytest.raises(UpstreamAuthError) as excinfo:
        await resolver.resolve("used-code", "https://chat.example/callback")

    assert excinfo.value.error == "slack_oauth_failed"
    assert excinfo.value.details == {"ok": False, "error": "invalid_code"}
    assert fake_slack.methods() == ["oauth.v2.access"]


@pytest.mark.asyncio
async def test_exchange_without_user_token_fails(resolver, fake_slack):
    fake_slack.responses["oauth.v2.access"] = {"ok": True, "access_token": "xoxb-bot-only"}

    with pytest.raises(UpstreamAuthError):
        await resolver.resolve("code", "https://chat.example/callback")


@pytest.mark.asyncio
async def test_unconfirmed_identity_fails(resolver, fake_slack):
    fake_slack.responses["auth.test"] = {"ok": False, "error": "invalid_auth"}

    with pytest.raises(IdentityResolutionError) as excinfo:
        await resolver.resolve("code", "https://chat.example/callback")

    assert excinfo.value.error == "auth_test_failed"
    assert excinfo.value.details["error"] == "invalid_auth"


def test_authorize_url_targets_workspace_with_read_scopes(settings, slack_client):
    settings.slack_team_domain = "acme"
    url = urlparse(IdentityResolver(settings, slack_client).authorize_url("https://cb", "xyz"))
    params = parse_qs(url.query)

    assert url.netloc == "acme.slack.com"
    assert url.path == "/oauth/v2/authorize"
    assert params["client_id"] == ["client-id"]
    assert params["user_scope"] == [USER_SCOPES]
    assert params["redirect_uri"] == ["https://cb"]
    assert params["state"] == ["xyz"]


def test_authorize_url_omits_absent_parameters(resolver):
    url = urlparse(resolver.authorize_url())

    assert url.netloc == "slack.com"
    assert set(parse_qs(url.query)) == {"client_id", "user_scope"}
