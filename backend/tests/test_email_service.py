# Overview: Pytest coverage for Mailgun delivery, the support form and Google OAuth helpers.

from unittest.mock import Mock, patch

import pytest
import requests
from itsdangerous import URLSafeTimedSerializer

from retoro.services import email_service, oauth_service
from retoro.services.oauth_service import OAuthError


MAILGUN = {
    "MAILGUN_API_KEY": "key-test",
    "MAILGUN_DOMAIN": "mg.retoro.test",
    "MAILGUN_URL": "https://api.mailgun.test",
    "SUPPORT_EMAIL": "support@retoro.test",
}


@pytest.fixture
def mailgun(app):
    with patch.dict(app.config, MAILGUN):
        yield


class TestEmailService:

    def test_unconfigured_does_not_send(self, db_session, caplog):
        with patch("retoro.services.email_service.requests.post") as post:
            assert email_service.send("a@example.com", "Hi", "<p>Hi</p>") is False

        post.assert_not_called()
        assert "not configured" in caplog.text

    def test_send_posts_to_mailgun(self, db_session, mailgun):
        with patch("retoro.services.email_service.requests.post") as post:
            post.return_value = Mock(raise_for_status=Mock())

            assert email_service.send("a@example.com", "Hi", "<p>Hi</p>", text="Hi", reply_to="b@example.com")

        args, kwargs = post.call_args
        assert args[0] == "https://api.mailgun.test/v3/mg.retoro.test/messages"
        assert kwargs["auth"] == ("api", "key-test")
        assert kwargs["data"]["to"] == ["a@example.com"]
        assert kwargs["data"]["from"] == "Retoro <noreply@mg.retoro.test>"
        assert kwargs["data"]["h:Reply-To"] == "b@example.com"

    def test_send_failure_returns_false(self, db_session, mailgun):
        with patch("retoro.services.email_service.requests.post",
                   side_effect=requests.ConnectionError("down")):
            assert email_service.send("a@example.com", "Hi", "<p>Hi</p>") is False

    def test_magic_link_email_contains_link(self, db_session, mailgun):
        with patch.object(email_service, "send", return_value=True) as send:
            email_service.send_magic_link_email("a@example.com", "http://localhost:3000/api/auth/verify?token=t")

        to, subject, html = send.call_args.args
        assert to == "a@example.com"
        assert subject == "Log in to Retoro"
        assert "verify?token=t" in html


class TestSupportEndpoint:

    def test_requires_subject_and_message(self, client, db_session):
        response = client.post('/api/support/contact', json={"subject": "Help"})
        assert response.status_code == 400

    def test_relays_to_support(self, client, db_session, mailgun):
        with patch("retoro.services.email_service.requests.post") as post:
            post.return_value = Mock(raise_for_status=Mock())

            response = client.post('/api/support/contact', json={
                "subject": "Help", "message": "<b>broken</b>", "email": "me@example.com",
            })

        assert response.get_json()["success"] is True
        data = post.call_args.kwargs["data"]
        assert data["to"] == ["support@retoro.test"]
        assert data["subject"] == "[Support] Help"
        assert "&lt;b&gt;broken&lt;/b&gt;" in data["html"]

    def test_succeeds_when_email_fails(self, client, db_session):
        response = client.post('/api/support/contact', json={"subject": "Help", "message": "Hi"})
        assert response.status_code == 200


class TestOAuthHelpers:

    def test_state_round_trip(self, app):
        assert oauth_service.decode_state(oauth_service.encode_state("anon-1")) == "anon-1"

    def test_state_is_signed_and_unique(self, app):
        first = oauth_service.encode_state("anon-1")

        assert "anon-1" not in first
        assert first != oauth_service.encode_state("anon-1")

    def test_unsigned_state_rejected(self, app):
        assert oauth_service.decode_state('{"anonymous_user_id": "victim"}') is None

    def test_state_signed_with_other_key_rejected(self, app):
        forged = URLSafeTimedSerializer("not-the-key", salt=oauth_service.STATE_SALT).dumps(
            {"anonymous_user_id": "victim"}
        )
        assert oauth_service.decode_state(forged) is None

    def test_expired_state_rejected(self, app):
        state = oauth_service.encode_state("anon-1")

        with patch.object(oauth_service, "STATE_MAX_AGE_SECONDS", -1):
            assert oauth_service.decode_state(state) is None

    def test_bad_state(self, db_session):
        assert oauth_service.decode_state("not json") is None
        assert oauth_service.decode_state(None) is None
        assert oauth_service.decode_state("[1, 2]") is None

    def test_authorization_url(self, app, db_session):
        with patch.dict(app.config, {"GOOGLE_CLIENT_ID": "cid"}):
            url = oauth_service.authorization_url("anon-1")

        assert url.startswith(oauth_service.AUTHORIZE_URL)
        assert "client_id=cid" in url
        assert "api%2Fauth%2Fgoogle%2Fcallback" in url

    def test_exchange_code(self, app, db_session):
        token = Mock(raise_for_status=Mock(), json=Mock(return_value={"access_token": "at"}))
        info = Mock(raise_for_status=Mock(), json=Mock(return_value={"email": "g@example.com", "name": "G"}))

        with patch.dict(app.config, {"GOOGLE_CLIENT_ID": "cid", "GOOGLE_CLIENT_SECRET": "s"}), \
                patch("retoro.services.oauth_service.requests.post", return_value=token), \
                patch("retoro.services.oauth_service.requests.get", return_value=info) as get:
            profile = oauth_service.exchange_code("code")

        assert profile.email == "g@example.com"
        assert get.call_args.kwargs["headers"] == {"Authorization": "Bearer at"}

    def test_exchange_code_token_failure(self, app, db_session):
        with patch.dict(app.config, {"GOOGLE_CLIENT_ID": "cid", "GOOGLE_CLIENT_SECRET": "s"}), \
                patch("retoro.services.oauth_service.requests.post",
                      side_effect=requests.ConnectionError("down")):
            with pytest.raises(OAuthError, match="token_exchange_failed"):
                oauth_service.exchange_code("code")

    def test_exchange_code_no_email(self, app, db_session):
        token = Mock(raise_for_status=Mock(), json=Mock(return_value={"access_token": "at"}))
        info = Mock(raise_for_status=Mock(), json=Mock(return_value={"name": "G"}))

        with patch.dict(app.config, {"GOOGLE_CLIENT_ID": "cid", "GOOGLE_CLIENT_SECRET": "s"}), \
                patch("retoro.services.oauth_service.requests.post", return_value=token), \
                patch("retoro.services.oauth_service.requests.get", return_value=info):
            with pytest.raises(OAuthError, match="no_email"):
                oauth_service.exchange_code("code")
