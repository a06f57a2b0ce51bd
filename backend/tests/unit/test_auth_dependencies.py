"""
Tests for authentication dependencies.
"""

import pytest
from unittest.mock import patch
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from auth.dependencies import (
    UserContext, get_token_payload, get_current_user,
    require_admin, require_caregiver, require_caregiver_or_admin
)
from core.constants import ROLE_ADMIN, ROLE_CAREGIVER, ROLE_PATIENT
from services.jwt_service import TokenPayload
from tests.conftest import create_user


def make_context(role: str) -> UserContext:
    return UserContext(user_id=1, email="someone@example.com", role=role, name="Some One")


def payload_for(user) -> TokenPayload:
    return TokenPayload(
        sub=str(user.id), user_id=user.id, email=user.email, role=user.role, name=user.full_name
    )


class TestUserContext:
    """Test UserContext role helpers."""

    def test_patient(self):
        context = make_context(ROLE_PATIENT)
        assert context.is_patient() is True
        assert context.is_caregiver() is False
        assert context.is_admin() is False

    def test_caregiver(self):
        context = make_context(ROLE_CAREGIVER)
        assert context.is_caregiver() is True
        assert context.is_patient() is False

    def test_repr(self):
        assert "role='admin'" in repr(make_context(ROLE_ADMIN))


class TestGetTokenPayload:

    def test_no_credentials(self):
        assert get_token_payload(None) is None

    @patch('auth.dependencies.jwt_service')
    def test_token_verified(self, mock_jwt_service):
        payload = TokenPayload(sub="1", user_id=1, email="a@example.com", role="patient", name="A")
        mock_jwt_service.verify_token.return_value = payload

        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="abc")

        assert get_token_payload(credentials) is payload
        mock_jwt_service.verify_token.assert_called_once_with("abc")


class TestGetCurrentUser:

    def test_missing_payload(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            get_current_user(None, db_session)
        assert exc_info.value.status_code == 401

    def test_role_read_from_database(self, db_session):
        user = create_user(db_session, "promoted@example.com", ROLE_PATIENT)
        payload = payload_for(user)
        user.role = ROLE_CAREGIVER
        db_session.commit()

        context = get_current_user(payload, db_session)

        assert context.user_id == user.id
        assert context.role == ROLE_CAREGIVER

    def test_email_must_match(self, db_session):
        user = create_user(db_session, "renamed@example.com", ROLE_PATIENT)
        payload = payload_for(user)
        user.email = "changed@example.com"
        db_session.commit()

        with pytest.raises(HTTPException) as exc_info:
            get_current_user(payload, db_session)
        assert exc_info.value.detail == "User not found"

    def test_patient_context_carries_caregiver(self, db_session, patient, caregiver):
        context = get_current_user(payload_for(patient), db_session)
        assert context.caregiver_id == caregiver.id


class TestRoleRequirements:

    @pytest.mark.parametrize("dependency,role,allowed", [
        (require_admin, ROLE_ADMIN, True),
        (require_admin, ROLE_CAREGIVER, False),
        (require_caregiver, ROLE_CAREGIVER, True),
        (require_caregiver, ROLE_ADMIN, False),
        (require_caregiver, ROLE_PATIENT, False),
        (require_caregiver_or_admin, ROLE_ADMIN, True),
        (require_caregiver_or_admin, ROLE_CAREGIVER, True),
        (require_caregiver_or_admin, ROLE_PATIENT, False),
    ])
    def test_role_gate(self, dependency, role, allowed):
        context = make_context(role)
        if allowed:
            assert dependency(context) is context
        else:
            with pytest.raises(HTTPException) as exc_info:
                dependency(context)
            assert exc_info.value.status_code == 403
            assert exc_info.value.detail == "Not authorized"
