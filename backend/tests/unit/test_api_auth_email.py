"""Tests for the email auth endpoints.

POST /auth/email/register, GET /auth/email/verify/{id}/{token},
POST /auth/email/login, POST /auth/email/forgot-password,
POST /auth/email/reset-password/{id}/{token}, POST /auth/email/logout,
GET /auth/email/check.

The credential store and notifier are in-memory fakes (see conftest).
"""

import jwt

from mailauth.core.config import settings
from tests.conftest import TEST_AUTH_SECRET, TEST_BASE_URL, TEST_CSRF_TOKEN

_PREFIX = "/api/v1/auth/email"
_EMAIL = "alice@example.com"
_PASSWORD = "pw12"  # nosec B105


def _path(url: str) -> str:
    return url.removeprefix(TEST_BASE_URL)


async def _register_and_verify(client, notifier):
    await client.post(f"{_PREFIX}/register", json={"email": _EMAIL, "password": _PASSWORD})
    return await client.get(_path(notifier.last.url))


# ===================================================================
# Register
# ===================================================================


class TestRegisterEndpoint:
    async def test_register_sends_confirmation(self, client, notifier):
        response = await client.post(
            f"{_PREFIX}/register", json={"email": _EMAIL, "password": _PASSWORD}
        )

        assert response.status_code == 200
        assert response.json() == {
            "data": {"message": f"A confirmation e-mail has been sent to {_EMAIL}"}
        }
        assert notifier.last.kind == "verify"

    async def test_register_twice_resends(self, client, store, notifier):
        body = {"email": "a@b.com", "password": "pw12"}
        await client.post(f"{_PREFIX}/register", json=body)
        response = await client.post(f"{_PREFIX}/register", json=body)

        assert response.status_code == 200
        assert "data" in response.json()
        assert len(store.records) == 1
        assert len(notifier.sent) == 2

    async def test_missing_email_is_protocol_error(self, client):
        """Outcome errors are 200 with an error envelope."""
        response = await client.post(f"{_PREFIX}/register", json={})

        assert response.status_code == 200
        assert response.json()["error"]["code"] == "MISSING_EMAIL"
        assert response.json()["error"]["message"] == "No email provided"

    async def test_weak_password(self, client):
        response = await client.post(
            f"{_PREFIX}/register", json={"email": _EMAIL, "password": "pw"}
        )

        assert response.json()["error"] == {
            "code": "WEAK_PASSWORD",
            "message": "Password must be at least three characters",
            "details": None,
        }

    async def test_unknown_field_is_validation_error(self, client):
        response = await client.post(
            f"{_PREFIX}/register", json={"email": _EMAIL, "admin": True}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_malformed_json_is_validation_error(self, client):
        response = await client.post(
            f"{_PREFIX}/register",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400

    async def test_store_failure_is_500(self, client, store):
        store.broken = True

        response = await client.post(
            f"{_PREFIX}/register", json={"email": _EMAIL, "password": _PASSWORD}
        )

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"


# ===================================================================
# Verify
# ===================================================================


class TestVerifyEndpoint:
    async def test_verify_link_signs_in(self, client, store, notifier):
        response = await _register_and_verify(client, notifier)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["email"] == _EMAIL
        assert data["method"] == "email-verify"
        assert data["message"] == "Address verified"
        assert store.by_email(_EMAIL).verified is True
        assert settings.auth_cookie_name in response.cookies

    async def test_session_cookie_claims(self, client, store, notifier):
        response = await _register_and_verify(client, notifier)

        claims = jwt.decode(
            response.cookies[settings.auth_cookie_name],
            TEST_AUTH_SECRET,
            algorithms=["HS256"],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
        )
        assert claims["sub"] == str(store.by_email(_EMAIL).id)
        assert claims["email"] == _EMAIL
        assert claims["amr"] == "email-verify"

    async def test_verify_needs_no_csrf_token(self, client, notifier):
        """The link is opened from an email client, so there is no token."""
        await client.post(f"{_PREFIX}/register", json={"email": _EMAIL, "password": _PASSWORD})
        client.headers.pop(settings.csrf_header_name)

        response = await client.get(_path(notifier.last.url))

        assert response.json()["data"]["email"] == _EMAIL

    async def test_undecryptable_id_is_200_with_error(self, client, codec):
        response = await client.get(
            f"{_PREFIX}/verify/gAAAAABnot-a-ciphertext/{codec.encrypt('token')}"
        )

        assert response.status_code == 200
        assert response.json()["error"]["code"] == "UNABLE_TO_DECRYPT"
        assert settings.auth_cookie_name not in response.cookies

    async def test_reused_link(self, client, notifier):
        await _register_and_verify(client, notifier)

        response = await client.get(_path(notifier.last.url))

        assert response.json()["error"]["code"] == "INVALID_KEY"


# ===================================================================
# Login / logout / check
# ===================================================================


class TestLoginEndpoint:
    async def test_login_sets_session_cookie(self, client, notifier):
        await _register_and_verify(client, notifier)
        client.cookies.delete(settings.auth_cookie_name)

        response = await client.post(
            f"{_PREFIX}/login", json={"email": _EMAIL, "password": _PASSWORD}
        )

        assert response.status_code == 200
        assert response.json()["data"]["method"] == "email"
        assert settings.auth_cookie_name in response.cookies

    async def test_wrong_password(self, client, notifier):
        await _register_and_verify(client, notifier)

        response = await client.post(
            f"{_PREFIX}/login", json={"email": _EMAIL, "password": "wrong"}
        )

        assert response.status_code == 200
        assert response.json()["error"]["code"] == "PASSWORD_MISMATCH"
        assert response.json()["error"]["message"] == "Invalid email or password"

    async def test_before_verification(self, client):
        await client.post(f"{_PREFIX}/register", json={"email": "a@b.com", "password": "pw12"})

        response = await client.post(
            f"{_PREFIX}/login", json={"email": "a@b.com", "password": "wrong"}
        )

        assert response.json()["error"]["code"] == "ACCOUNT_NOT_VERIFIED"

    async def test_missing_password(self, client):
        response = await client.post(f"{_PREFIX}/login", json={"email": _EMAIL})
        assert response.json()["error"]["code"] == "MISSING_PASSWORD"


class TestSessionEndpoints:
    async def test_check_anonymous(self, client):
        response = await client.get(f"{_PREFIX}/check")

        assert response.json()["data"] == {
            "authenticated": False,
            "email": None,
            "csrf_token": TEST_CSRF_TOKEN,
        }

    async def test_check_after_verification(self, client, notifier):
        await _register_and_verify(client, notifier)

        response = await client.get(f"{_PREFIX}/check")

        assert response.json()["data"]["authenticated"] is True
        assert response.json()["data"]["email"] == _EMAIL

    async def test_check_issues_csrf_cookie(self, client):
        client.cookies.delete(settings.csrf_cookie_name)

        response = await client.get(f"{_PREFIX}/check")

        token = response.json()["data"]["csrf_token"]
        assert token
        assert response.cookies[settings.csrf_cookie_name] == token

    async def test_logout_clears_session(self, client, notifier):
        await _register_and_verify(client, notifier)

        response = await client.post(f"{_PREFIX}/logout")
        check = await client.get(f"{_PREFIX}/check")

        assert response.json()["data"]["message"] == "Logged out"
        assert check.json()["data"]["authenticated"] is False


# ===================================================================
# Forgot / reset password
# ===================================================================


class TestPasswordResetEndpoints:
    async def test_full_reset_round(self, client, notifier):
        await _register_and_verify(client, notifier)

        forgot = await client.post(f"{_PREFIX}/forgot-password", json={"email": _EMAIL})
        reset = await client.post(
            _path(notifier.last.url),
            json={"new": "newpass", "confirm": "newpass"},
        )
        login = await client.post(
            f"{_PREFIX}/login", json={"email": _EMAIL, "password": "newpass"}
        )

        assert forgot.json()["data"]["message"] == (
            f"A password reset e-mail has been sent to {_EMAIL}"
        )
        assert notifier.last.url.startswith(f"{TEST_BASE_URL}{_PREFIX}/reset-password/")
        assert reset.json() == {"data": {"message": "Password updated"}}
        assert login.json()["data"]["email"] == _EMAIL

    async def test_confirmation_mismatch(self, client, store, notifier):
        await _register_and_verify(client, notifier)
        await client.post(f"{_PREFIX}/forgot-password", json={"email": _EMAIL})
        before = store.by_email(_EMAIL).password_hash

        response = await client.post(
            _path(notifier.last.url),
            json={"new": "x1", "confirm": "x2"},
        )

        assert response.json()["error"]["code"] == "PASSWORD_MISMATCH"
        assert response.json()["error"]["message"] == "Passwords did not match, please try again"
        assert store.by_email(_EMAIL).password_hash == before

    async def test_forgot_unknown_address(self, client):
        response = await client.post(
            f"{_PREFIX}/forgot-password", json={"email": "nobody@example.com"}
        )
        assert response.json()["error"]["code"] == "FORGOT_PASSWORD_FAILURE"

    async def test_missing_new_password(self, client, codec):
        response = await client.post(
            f"{_PREFIX}/reset-password/{codec.encrypt('a')}/{codec.encrypt('b')}",
            json={"confirm": "newpass"},
        )
        assert response.json()["error"]["code"] == "MISSING_NEW_PASSWORD"


# ===================================================================
# CSRF
# ===================================================================


class TestCsrfProtection:
    async def test_post_without_header_rejected(self, client, store):
        client.headers.pop(settings.csrf_header_name)

        response = await client.post(
            f"{_PREFIX}/register", json={"email": _EMAIL, "password": _PASSWORD}
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "CSRF_TOKEN_INVALID"
        assert store.records == {}

    async def test_post_with_wrong_token_rejected(self, client):
        response = await client.post(
            f"{_PREFIX}/login",
            json={"email": _EMAIL, "password": _PASSWORD},
            headers={settings.csrf_header_name: "forged"},
        )
        assert response.status_code == 403

    async def test_token_accepted_as_query_param(self, client):
        client.headers.pop(settings.csrf_header_name)

        response = await client.post(
            f"{_PREFIX}/register",
            params={settings.csrf_param_name: TEST_CSRF_TOKEN},
            json={"email": _EMAIL, "password": _PASSWORD},
        )

        assert response.status_code == 200
        assert "data" in response.json()

    async def test_post_without_cookie_rejected(self, client):
        client.cookies.delete(settings.csrf_cookie_name)

        response = await client.post(f"{_PREFIX}/logout")

        assert response.status_code == 403
