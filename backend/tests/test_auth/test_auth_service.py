"""Tests for the auth service: signup, login, verification and password flows."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError
from sqlalchemy.ext.asyncio import AsyncSession

from natours.auth.jwt import create_access_token
from natours.auth.passwords import verify_password
from natours.errors import Conflict, Forbidden, Internal, InvalidInput, NotFound, Unauthorized, ValidationFailed
from natours.models.user import User
from natours.services import auth_service

PASSWORD = "testpass123"


class TestSignup:
    async def test_creates_user_with_hashed_password(self, db_session: AsyncSession):
        user, token = await auth_service.signup(db_session, "Ann Walker", "Ann@Example.com", PASSWORD, PASSWORD)
        assert user.email == "ann@example.com"
        assert user.role == "user"
        assert user.hashed_password != PASSWORD
        assert verify_password(PASSWORD, user.hashed_password)
        assert token

    async def test_mismatched_confirmation_rejected(self, db_session: AsyncSession):
        with pytest.raises(ValidationFailed, match="Passwords are not the same!"):
            await auth_service.signup(db_session, "Ann Walker", "ann@example.com", PASSWORD, "different1")

    async def test_duplicate_email_conflicts(self, db_session: AsyncSession, test_user: User):
        with pytest.raises(Conflict):
            await auth_service.signup(db_session, "Copy Cat", test_user.email, PASSWORD, PASSWORD)

    async def test_sends_welcome_email(self, db_session: AsyncSession, sent_emails: list):
        await auth_service.signup(
            db_session, "Ann Walker", "ann@example.com", PASSWORD, PASSWORD, account_url="http://testserver/account"
        )
        assert len(sent_emails) == 1
        assert sent_emails[0]["to"] == "ann@example.com"
        assert "http://testserver/account" in sent_emails[0]["text"]

    async def test_welcome_email_failure_is_not_fatal(self, db_session: AsyncSession):
        error = ClientError({"Error": {"Code": "MessageRejected", "Message": "nope"}}, "SendEmail")
        with patch("natours.services.email._send", side_effect=error):
            user, token = await auth_service.signup(
                db_session, "Ann Walker", "ann@example.com", PASSWORD, PASSWORD, account_url="http://x/account"
            )
        assert user.id is not None
        assert token


class TestLogin:
    async def test_valid_credentials(self, db_session: AsyncSession, test_user: User):
        user, token = await auth_service.login(db_session, test_user.email, PASSWORD)
        assert user.id == test_user.id
        assert (await auth_service.verify(db_session, token)).id == test_user.id

    async def test_missing_fields(self, db_session: AsyncSession):
        with pytest.raises(ValidationFailed, match="Please provide email and password!"):
            await auth_service.login(db_session, "someone@test.com", None)

    async def test_wrong_password_and_unknown_email_look_the_same(self, db_session: AsyncSession, test_user: User):
        with pytest.raises(Unauthorized) as wrong_password:
            await auth_service.login(db_session, test_user.email, "wrongpass1")
        with pytest.raises(Unauthorized) as unknown_email:
            await auth_service.login(db_session, "nobody@test.com", PASSWORD)
        assert wrong_password.value.message == unknown_email.value.message == "Incorrect email or password"

    async def test_inactive_user_cannot_log_in(self, db_session: AsyncSession, make_user):
        user = await make_user("user", active=False)
        with pytest.raises(Unauthorized):
            await auth_service.login(db_session, user.email, PASSWORD)


class TestVerify:
    async def test_missing_token(self, db_session: AsyncSession):
        with pytest.raises(Unauthorized, match="not logged in"):
            await auth_service.verify(db_session, None)

    async def test_expired_token(self, db_session: AsyncSession, test_user: User):
        token = create_access_token(str(test_user.id), expires_delta=timedelta(seconds=-1))
        with pytest.raises(Unauthorized, match="expired"):
            await auth_service.verify(db_session, token)

    async def test_deleted_user(self, db_session: AsyncSession, test_user: User):
        token = create_access_token(str(test_user.id))
        await db_session.delete(test_user)
        await db_session.flush()
        with pytest.raises(Unauthorized, match="no longer exists"):
            await auth_service.verify(db_session, token)

    async def test_inactive_user(self, db_session: AsyncSession, test_user: User):
        token = create_access_token(str(test_user.id))
        test_user.active = False
        await db_session.flush()
        with pytest.raises(Unauthorized):
            await auth_service.verify(db_session, token)

    async def test_token_issued_before_password_change_is_stale(self, db_session: AsyncSession, test_user: User):
        old_token = create_access_token(
            str(test_user.id), issued_at=datetime.now(timezone.utc) - timedelta(seconds=60)
        )
        assert (await auth_service.verify(db_session, old_token)).id == test_user.id

        _, new_token = await auth_service.update_password(db_session, test_user, PASSWORD, "newpass456", "newpass456")

        with pytest.raises(Unauthorized, match="recently changed password"):
            await auth_service.verify(db_session, old_token)
        assert (await auth_service.verify(db_session, new_token)).id == test_user.id


class TestRequireRole:
    def test_allowed_role_passes(self):
        auth_service.require_role(User(role="admin"), ["admin", "lead-guide"])

    def test_other_role_forbidden(self):
        with pytest.raises(Forbidden):
            auth_service.require_role(User(role="user"), ["admin", "lead-guide"])


class TestPasswordReset:
    async def test_stores_only_token_hash(self, db_session: AsyncSession, test_user: User, sent_emails: list):
        raw = await auth_service.issue_password_reset(db_session, test_user.email, "http://testserver/reset")
        assert test_user.password_reset_token == auth_service.hash_reset_token(raw)
        assert test_user.password_reset_token != raw
        assert test_user.password_reset_expires is not None
        assert f"http://testserver/reset/{raw}" in sent_emails[-1]["text"]

    async def test_unknown_email(self, db_session: AsyncSession):
        with pytest.raises(NotFound):
            await auth_service.issue_password_reset(db_session, "nobody@test.com", "http://testserver/reset")

    async def test_delivery_failure_clears_token(self, db_session: AsyncSession, test_user: User):
        error = ClientError({"Error": {"Code": "Throttling", "Message": "slow down"}}, "SendEmail")
        with patch("natours.services.email._send", side_effect=error):
            with pytest.raises(Internal, match="There was an error sending the email"):
                await auth_service.issue_password_reset(db_session, test_user.email, "http://testserver/reset")
        assert test_user.password_reset_token is None
        assert test_user.password_reset_expires is None

    async def test_consume_sets_password_and_is_single_use(self, db_session: AsyncSession, test_user: User):
        raw = await auth_service.issue_password_reset(db_session, test_user.email, "http://testserver/reset")

        user, token = await auth_service.consume_password_reset(db_session, raw, "brandnew99", "brandnew99")
        assert user.id == test_user.id
        assert verify_password("brandnew99", user.hashed_password)
        assert user.password_reset_token is None
        assert token

        with pytest.raises(InvalidInput, match="Token is invalid or has expired"):
            await auth_service.consume_password_reset(db_session, raw, "another99", "another99")

    async def test_expired_token_rejected(self, db_session: AsyncSession, test_user: User):
        raw = await auth_service.issue_password_reset(db_session, test_user.email, "http://testserver/reset")
        test_user.password_reset_expires = datetime.now(timezone.utc) - timedelta(minutes=1)
        await db_session.flush()

        with pytest.raises(InvalidInput):
            await auth_service.consume_password_reset(db_session, raw, "brandnew99", "brandnew99")


class TestUpdatePassword:
    async def test_wrong_current_password(self, db_session: AsyncSession, test_user: User):
        with pytest.raises(Unauthorized, match="current password is wrong"):
            await auth_service.update_password(db_session, test_user, "notmypass1", "newpass456", "newpass456")

    async def test_sets_password_changed_at(self, db_session: AsyncSession, test_user: User):
        assert test_user.password_changed_at is None
        await auth_service.update_password(db_session, test_user, PASSWORD, "newpass456", "newpass456")
        assert test_user.password_changed_at is not None
        assert verify_password("newpass456", test_user.hashed_password)
