"""Transactional email delivery through Amazon SES."""

import asyncio
import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from natours.config import settings
from natours.models.user import User

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when SES rejects or cannot be reached for a message."""


def _sesv2_client():
    return boto3.client("sesv2", region_name=settings.aws_region)


def _send(to_email: str, subject: str, text: str) -> str | None:
    resp = _sesv2_client().send_email(
        FromEmailAddress=settings.email_from,
        Destination={"ToAddresses": [to_email]},
        Content={
            "Simple": {
                "Subject": {"Data": subject[:200]},
                "Body": {"Text": {"Data": text}},
            }
        },
    )
    return (resp or {}).get("MessageId")


async def send_email(*, to_email: str, subject: str, text: str) -> str | None:
    """Send a plain-text email without blocking the event loop.

    Raises:
        EmailDeliveryError: If SES fails to accept the message.
    """
    try:
        message_id = await asyncio.to_thread(_send, to_email, subject, text)
    except (BotoCoreError, ClientError) as e:
        logger.warning("Email to %s failed: %s", to_email, e)
        raise EmailDeliveryError(str(e)) from e
    logger.info("Sent email %r to %s (message_id=%s)", subject, to_email, message_id)
    return message_id


def _first_name(user: User) -> str:
    return user.name.split(" ")[0]


async def send_welcome(user: User, url: str) -> None:
    await send_email(
        to_email=user.email,
        subject="Welcome to the Natours Family!",
        text=(
            f"Hi {_first_name(user)},\n\n"
            "Welcome to Natours, we're glad to have you!\n"
            f"Upload a profile photo and set up your account here: {url}\n"
        ),
    )


async def send_password_reset(user: User, url: str) -> None:
    await send_email(
        to_email=user.email,
        subject=f"Your password reset token (valid for only {settings.password_reset_expires_minutes} minutes)",
        text=(
            f"Hi {_first_name(user)},\n\n"
            f"Forgot your password? Submit a PATCH request with your new password and "
            f"password_confirm to: {url}\n"
            "If you didn't forget your password, please ignore this email.\n"
        ),
    )
