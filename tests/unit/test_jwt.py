"""Tests for HS256 JWT signing and the typed token codec."""

from __future__ import annotations

import pytest

from tenantgate.auth.jwt import AUDIENCE_SAAS_ADMIN, AUDIENCE_TENANT_USER, JWTManager
from tenantgate.auth.tokens import TokenCodec
from tenantgate.core.exceptions import UnauthenticatedError
from tenantgate.core.types import SaaSAdminToken, TenantUserToken, UserContext


class TestJWTManager:
    """Tests for JWT token creation and verification."""

    def test_create_and_verify(self) -> None:
        jwt = JWTManager(secret="test-secret")
        token = jwt.create_token({"userId": "u1"}, audience=AUDIENCE_TENANT_USER)

        payload = jwt.verify_token(token, AUDIENCE_TENANT_USER)
        assert payload is not None
        assert payload["userId"] == "u1"
        assert payload["iss"] == "saas-core"
        assert payload["aud"] == AUDIENCE_TENANT_USER
        assert payload["exp"] > payload["iat"]

    def test_expired_token(self) -> None:
        jwt = JWTManager(secret="test-secret")
        # exp == iat is already expired
        token = jwt.create_token({"userId": "u1"}, audience=AUDIENCE_TENANT_USER, expiry_seconds=0)
        assert jwt.verify_token(token, AUDIENCE_TENANT_USER) is None

    def test_invalid_signature(self) -> None:
        jwt1 = JWTManager(secret="secret-1")
        jwt2 = JWTManager(secret="secret-2")

        token = jwt1.create_token({"userId": "u1"}, audience=AUDIENCE_TENANT_USER)
        assert jwt2.verify_token(token, AUDIENCE_TENANT_USER) is None

    def test_wrong_audience(self) -> None:
        jwt = JWTManager(secret="test-secret")
        token = jwt.create_token({"userId": "u1"}, audience=AUDIENCE_TENANT_USER)
        assert jwt.verify_token(token, AUDIENCE_SAAS_ADMIN) is None

    def test_wrong_issuer(self) -> None:
        token = JWTManager(secret="s", issuer="other").create_token({}, audience=AUDIENCE_SAAS_ADMIN)
        assert JWTManager(secret="s").verify_token(token, AUDIENCE_SAAS_ADMIN) is None

    def test_malformed_token(self) -> None:
        jwt = JWTManager(secret="test-secret")
        assert jwt.verify_token("not.a.valid.token.format", AUDIENCE_TENANT_USER) is None
        assert jwt.verify_token("", AUDIENCE_TENANT_USER) is None
        assert jwt.verify_token("abc", AUDIENCE_TENANT_USER) is None

    def test_non_ascii_token(self) -> None:
        jwt = JWTManager(secret="test-secret")
        assert jwt.verify_token("a.b.\u00e9", AUDIENCE_TENANT_USER) is None
        assert jwt.verify_token("\u00e9.\u00e9.\u00e9", AUDIENCE_SAAS_ADMIN) is None

    def test_tampered_payload(self) -> None:
        jwt = JWTManager(secret="test-secret")
        token = jwt.create_token({"userId": "u1"}, audience=AUDIENCE_TENANT_USER)
        parts = token.split(".")
        parts[1] = parts[1] + "x"
        assert jwt.verify_token(".".join(parts), AUDIENCE_TENANT_USER) is None


class TestTokenCodec:
    def test_tenant_user_round_trip(self, codec: TokenCodec, tenant_token: TenantUserToken) -> None:
        decoded = codec.decode_tenant_user(codec.encode_tenant_user(tenant_token))
        assert decoded == tenant_token
        assert decoded.context is UserContext.TENANT_USER

    def test_saas_admin_round_trip(self, codec: TokenCodec, admin_token: SaaSAdminToken) -> None:
        decoded = codec.decode_saas_admin(codec.encode_saas_admin(admin_token))
        assert decoded.user_id == "admin-1"
        assert decoded.role == "owner"

    def test_admin_token_rejected_as_tenant_user(
        self, codec: TokenCodec, admin_token: SaaSAdminToken
    ) -> None:
        with pytest.raises(UnauthenticatedError):
            codec.decode_tenant_user(codec.encode_saas_admin(admin_token))

    def test_wrong_context_claim(self, jwt_manager: JWTManager, codec: TokenCodec) -> None:
        raw = jwt_manager.create_token(
            {"context": "saas_admin", "userId": "u1", "tenantId": "t1", "role": "member"},
            audience=AUDIENCE_TENANT_USER,
        )
        with pytest.raises(UnauthenticatedError, match="context"):
            codec.decode_tenant_user(raw)

    def test_missing_tenant_id(self, jwt_manager: JWTManager, codec: TokenCodec) -> None:
        raw = jwt_manager.create_token(
            {"context": "tenant_user", "userId": "u1", "role": "member"},
            audience=AUDIENCE_TENANT_USER,
        )
        with pytest.raises(UnauthenticatedError, match="Malformed"):
            codec.decode_tenant_user(raw)

    def test_non_list_permissions(self, jwt_manager: JWTManager, codec: TokenCodec) -> None:
        raw = jwt_manager.create_token(
            {
                "context": "tenant_user",
                "userId": "u1",
                "tenantId": "t1",
                "role": "member",
                "permissions": "hello.read",
            },
            audience=AUDIENCE_TENANT_USER,
        )
        with pytest.raises(UnauthenticatedError):
            codec.decode_tenant_user(raw)

    def test_absent_lists_default_empty(self, jwt_manager: JWTManager, codec: TokenCodec) -> None:
        raw = jwt_manager.create_token(
            {"context": "tenant_user", "userId": "u1", "tenantId": "t1", "role": "member"},
            audience=AUDIENCE_TENANT_USER,
        )
        token = codec.decode_tenant_user(raw)
        assert token.permissions == frozenset()
        assert token.active_modules == ()
