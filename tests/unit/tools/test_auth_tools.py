"""
Unit tests for Firebase Authentication helpers.

The admin SDK and the Identity Toolkit endpoint are mocked; no network calls.
"""

import httpx
import pytest
from unittest.mock import MagicMock, patch

from firebase_admin import auth

from roomiematch.tools import auth_tools
from roomiematch.utils.errors import AuthenticationError, DuplicateUserError


def _toolkit_response(status_code, payload):
    response = MagicMock()
    response.status_code = status_code
    response.is_success = 200 <= status_code < 300
    response.content = b"{}"
    response.json.return_value = payload
    return response


@pytest.fixture
def toolkit_client():
    with patch.object(auth_tools.httpx, "Client") as client_cls:
        client = client_cls.return_value.__enter__.return_value
        yield client


class TestSignInWithPassword:
    @patch("roomiematch.tools.auth_tools.config.FIREBASE_WEB_API_KEY", "web-key")
    def test_returns_session(self, toolkit_client):
        toolkit_client.post.return_value = _toolkit_response(
            200,
            {"localId": "uid-1", "idToken": "id", "refreshToken": "refresh", "expiresIn": "3600"},
        )

        session = auth_tools.sign_in_with_password("a@example.com", "secret123")

        assert session == {
            "uid": "uid-1",
            "id_token": "id",
            "refresh_token": "refresh",
            "expires_in": 3600,
        }
        _, kwargs = toolkit_client.post.call_args
        assert kwargs["params"] == {"key": "web-key"}
        assert kwargs["json"]["returnSecureToken"] is True

    @patch("roomiematch.tools.auth_tools.config.FIREBASE_WEB_API_KEY", "web-key")
    def test_rejected_credentials(self, toolkit_client):
        toolkit_client.post.return_value = _toolkit_response(
            400, {"error": {"message": "INVALID_PASSWORD"}}
        )
        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            auth_tools.sign_in_with_password("a@example.com", "wrong")

    @patch("roomiematch.tools.auth_tools.config.FIREBASE_WEB_API_KEY", "web-key")
    def test_network_failure(self, toolkit_client):
        toolkit_client.post.side_effect = httpx.ConnectError("boom")
        with pytest.raises(AuthenticationError, match="unavailable"):
            auth_tools.sign_in_with_password("a@example.com", "secret123")

    @patch("roomiematch.tools.auth_tools.config.FIREBASE_WEB_API_KEY", None)
    def test_requires_web_api_key(self):
        with pytest.raises(AuthenticationError, match="not configured"):
            auth_tools.sign_in_with_password("a@example.com", "secret123")


class TestVerifyBearerToken:
    @pytest.mark.parametrize("header", [None, "", "Token abc", "Basic abc"])
    def test_missing_or_malformed_header(self, header):
        with pytest.raises(AuthenticationError):
            auth_tools.verify_bearer_token(header)

    @patch("roomiematch.tools.auth_tools._init_app")
    @patch("roomiematch.tools.auth_tools.auth.verify_id_token")
    def test_valid_token(self, mock_verify, _init):
        mock_verify.return_value = {"uid": "uid-1"}
        assert auth_tools.verify_bearer_token("Bearer good-token") == "uid-1"
        mock_verify.assert_called_once_with("good-token")

    @patch("roomiematch.tools.auth_tools._init_app")
    @patch("roomiematch.tools.auth_tools.auth.verify_id_token")
    def test_invalid_token(self, mock_verify, _init):
        mock_verify.side_effect = ValueError("expired")
        with pytest.raises(AuthenticationError, match="Invalid or expired"):
            auth_tools.verify_bearer_token("Bearer stale")


class TestCreateAuthUser:
    @patch("roomiematch.tools.auth_tools._init_app")
    @patch("roomiematch.tools.auth_tools.auth.create_user")
    def test_returns_uid(self, mock_create, _init):
        mock_create.return_value = MagicMock(uid="uid-9")
        assert auth_tools.create_auth_user("a@example.com", "secret123", "A B") == "uid-9"

    @patch("roomiematch.tools.auth_tools._init_app")
    @patch("roomiematch.tools.auth_tools.auth.create_user")
    def test_duplicate_email(self, mock_create, _init):
        mock_create.side_effect = auth.EmailAlreadyExistsError("exists", None, None)
        with pytest.raises(DuplicateUserError) as exc_info:
            auth_tools.create_auth_user("a@example.com", "secret123", "A B")
        assert exc_info.value.field == "email"
