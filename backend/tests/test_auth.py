# Overview: Pytest coverage for operator authentication and bearer tokens.

from datetime import timedelta

import pytest

from poscore.errors import AuthenticationError, ConflictError, ValidationError
from poscore.models import AuthToken
from poscore.services import auth_service, token_service
from poscore.services.auth_service import PasswordValidationError
from poscore.time_utils import utcnow
from conftest import PASSWORD, auth_headers, get_auth_token


class TestPasswords:
    @pytest.mark.parametrize("password", [
        "Sh0rt!",
        "alllowercase1!",
        "ALLUPPERCASE1!",
        "NoDigitsHere!",
        "NoSpecial123",
    ])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_hash_and_verify(self, app):
        hashed = auth_service.hash_password(PASSWORD)
        assert hashed != PASSWORD
        assert auth_service.verify_password(PASSWORD, hashed)
        assert not auth_service.verify_password("Wrong123!", hashed)

    def test_malformed_hash_does_not_verify(self):
        assert auth_service.verify_password(PASSWORD, "not-a-bcrypt-hash") is False


class TestOperators:
    def test_username_unique_within_vendor(self, cashier, vendor):
        with pytest.raises(ConflictError):
            auth_service.create_operator(
                vendor_id=vendor.id, username="cashier", email="x@y.test", password=PASSWORD
            )

    def test_unknown_role_rejected(self, db_session, vendor):
        with pytest.raises(ValidationError):
            auth_service.create_operator(
                vendor_id=vendor.id, username="owner", email="o@y.test", password=PASSWORD, role="owner"
            )

    def test_location_must_belong_to_vendor(self, db_session, vendor, other_location):
        with pytest.raises(ValidationError):
            auth_service.create_operator(
                vendor_id=vendor.id, username="drifter", email="d@y.test", password=PASSWORD,
                location_id=other_location.id,
            )

    def test_authenticate_with_vendor_slug(self, cashier, other_operator, other_vendor):
        """The same username in two vendors is disambiguated by slug."""
        operator = auth_service.authenticate("cashier", PASSWORD, vendor_slug=other_vendor.slug)
        assert operator.id == other_operator.id

    def test_ambiguous_username_requires_vendor(self, cashier, other_operator):
        """Without a slug, a username shared by two vendors never picks one."""
        with pytest.raises(AuthenticationError) as exc_info:
            auth_service.authenticate("cashier", PASSWORD)
        assert exc_info.value.details == {"required_fields": ["vendor"]}

    def test_authenticate_wrong_password(self, cashier):
        with pytest.raises(AuthenticationError):
            auth_service.authenticate("cashier", "Wrong123!")

    def test_inactive_operator_cannot_authenticate(self, db_session, cashier):
        cashier.is_active = False
        db_session.commit()
        with pytest.raises(AuthenticationError):
            auth_service.authenticate("cashier", PASSWORD)


class TestTokens:
    def test_issue_and_validate(self, cashier):
        record, token = token_service.issue_token(cashier)

        assert record.token_hash == token_service.hash_token(token)
        assert record.token_hash != token

        ctx = token_service.validate_token(token)
        assert ctx.operator_id == cashier.id
        assert ctx.vendor_id == cashier.vendor_id
        assert ctx.is_manager is False

    def test_expired_token(self, db_session, cashier):
        record, token = token_service.issue_token(cashier)
        record.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert token_service.validate_token(token) is None

    def test_idle_token_is_revoked(self, db_session, cashier):
        record, token = token_service.issue_token(cashier)
        record.last_used_at = utcnow() - timedelta(days=1)
        db_session.commit()

        assert token_service.validate_token(token) is None
        stored = db_session.get(AuthToken, record.id)
        assert stored.is_revoked is True
        assert stored.revoked_reason == "Idle timeout"

    def test_deactivated_vendor_revokes_token(self, db_session, cashier, vendor):
        _, token = token_service.issue_token(cashier)
        vendor.is_active = False
        db_session.commit()

        assert token_service.validate_token(token) is None

    def test_revoke(self, cashier):
        _, token = token_service.issue_token(cashier)
        assert token_service.revoke_token(token) is True
        assert token_service.revoke_token(token) is False
        assert token_service.validate_token(token) is None


class TestAuthRoutes:
    def test_login_and_me(self, client, cashier, vendor):
        response = client.post('/api/auth/login', json={'username': 'cashier', 'password': PASSWORD})
        assert response.status_code == 200
        assert response.json['success'] is True
        assert response.json['vendor_id'] == vendor.id
        assert 'password_hash' not in response.json['operator']

        me = client.get('/api/auth/me', headers=auth_headers(response.json['token']))
        assert me.status_code == 200
        assert me.json['operator']['username'] == 'cashier'
        assert me.json['role'] == 'cashier'

    def test_login_shared_username_lands_in_requested_vendor(self, client, cashier, vendor, other_operator, other_vendor):
        response = client.post('/api/auth/login', json={'username': 'cashier', 'password': PASSWORD})
        assert response.status_code == 401
        assert response.json['error'] == 'Vendor is required for this username'
        assert 'token' not in response.json

        token = get_auth_token(client, 'cashier', vendor_slug=vendor.slug)
        me = client.get('/api/auth/me', headers=auth_headers(token))
        assert me.json['vendor_id'] == vendor.id
        assert me.json['role'] == 'cashier'

        token = get_auth_token(client, 'cashier', vendor_slug=other_vendor.slug)
        me = client.get('/api/auth/me', headers=auth_headers(token))
        assert me.json['vendor_id'] == other_vendor.id

    def test_login_bad_credentials(self, client, cashier):
        response = client.post('/api/auth/login', json={'username': 'cashier', 'password': 'Wrong123!'})
        assert response.status_code == 401
        assert response.json == {'success': False, 'error': 'Invalid username or password'}

    def test_login_requires_fields(self, client, db_session):
        response = client.post('/api/auth/login', json={'username': 'cashier'})
        assert response.status_code == 400

    def test_logout_revokes_token(self, client, cashier):
        token = get_auth_token(client, 'cashier')

        response = client.post('/api/auth/logout', headers=auth_headers(token))
        assert response.status_code == 200

        me = client.get('/api/auth/me', headers=auth_headers(token))
        assert me.status_code == 401

    def test_missing_and_bogus_tokens(self, client, db_session):
        assert client.get('/api/auth/me').status_code == 401
        assert client.get('/api/auth/me', headers=auth_headers('deadbeef')).status_code == 401
        assert client.post('/api/auth/logout').status_code == 401
