import pytest
import requests

from app.client.api import ApiError, AuthApiClient
from app.client.invite_flow import INVALID_LINK, InviteAcceptanceFlow, InviteView
from app.core.config import settings

from conftest import age_session, auth, last_invite_token


class RecordingSession:
    """Stands in for requests.Session; fails the test if a request is made."""

    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def post(self, url, json=None, headers=None):
        self.calls.append((url, json))
        if self.error:
            raise self.error
        raise AssertionError("unexpected request")


def _invite_url(client, outbox, admin_token, action):
    client.post(
        "/auth/issue",
        json={"email": "new@example.com", "kind": "admin_invite"},
        headers=auth(admin_token),
    )
    mail = [m for m in outbox if m["to"] == "new@example.com"][-1]["html"]
    token = last_invite_token(outbox, "new@example.com")
    return f"{settings.app_base_url}/admin-invite?token={token}&email=new%40example.com&action={action}", mail


@pytest.mark.parametrize("url", [
    "http://localhost:5173/admin-invite",
    "http://localhost:5173/admin-invite?token=abc&action=accept",
    "http://localhost:5173/admin-invite?email=a%40b.com&action=accept",
    "http://localhost:5173/admin-invite?token=abc&email=a%40b.com&action=maybe",
])
def test_broken_link_fails_without_request(url):
    session = RecordingSession()
    flow = InviteAcceptanceFlow.from_url(AuthApiClient(session=session), url)

    screen = flow.run()
    assert screen.view == InviteView.ERROR
    assert screen.message == INVALID_LINK
    assert session.calls == []


def test_accept_link_shows_password(client, db, outbox, admin_token):
    url, _ = _invite_url(client, outbox, admin_token, "accept")
    flow = InviteAcceptanceFlow.from_url(AuthApiClient(session=client), url)
    assert flow.screen.view == InviteView.LOADING

    screen = flow.run()
    assert screen.view == InviteView.ACCEPTED
    assert screen.password == settings.default_admin_password

    # a second run does not call the server again
    assert flow.run() is screen


def test_decline_link(client, outbox, admin_token):
    url, _ = _invite_url(client, outbox, admin_token, "decline")
    screen = InviteAcceptanceFlow.from_url(AuthApiClient(session=client), url).run()
    assert screen.view == InviteView.DECLINED
    assert screen.password is None


def test_expired_link_shows_server_message(client, db, outbox, admin_token):
    url, _ = _invite_url(client, outbox, admin_token, "accept")
    age_session(db, "new@example.com", hours=25)

    screen = InviteAcceptanceFlow.from_url(AuthApiClient(session=client), url).run()
    assert screen.view == InviteView.ERROR
    assert screen.message == "This invitation has expired."


def test_network_failure_is_an_error_screen():
    session = RecordingSession(error=requests.ConnectionError("down"))
    url = "http://localhost:5173/admin-invite?token=abc&email=a%40b.com&action=accept"

    screen = InviteAcceptanceFlow.from_url(AuthApiClient(session=session), url).run()
    assert screen.view == InviteView.ERROR
    assert screen.message == "Network error, please try again."
    assert len(session.calls) == 1


def test_api_error_carries_status_and_reason(client):
    api = AuthApiClient(session=client)
    with pytest.raises(ApiError) as exc:
        api.verify_otp("user@example.com", "123456", "password_reset")
    assert exc.value.status_code == 400
    assert exc.value.reason == "invalid_code"
    assert not exc.value.is_locked


def test_login_keeps_access_token(client, admin_token):
    api = AuthApiClient(session=client)
    api.login("owner@example.com", "owner123")
    assert api.access_token

    data = api.issue("new@example.com", "admin_invite", inviter_name="Owner")
    assert data["success"] is True
