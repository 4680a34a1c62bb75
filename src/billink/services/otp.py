"""Phone verification with one-time codes."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta

from tortoise import timezone

from billink.config import Settings, settings
from billink.core.errors import (
    InvalidInputError,
    OtpDeliveryError,
    OtpExpiredError,
    OtpMismatchError,
    OtpNotFoundError,
)
from billink.core.models import Customer
from billink.core.repositories.customer import CustomerRepository
from billink.core.repositories.otp import OtpChallengeRepository
from billink.services.notifications import (
    NotificationSender,
    is_valid_ph_number,
    normalize_ph_number,
)

logger = logging.getLogger(__name__)

CODE_DIGITS = 6


def _hash_code(code: str) -> str:
    return hashlib.sha256(code.encode()).hexdigest()


def _aware(value: datetime) -> datetime:
    return timezone.make_aware(value) if timezone.is_naive(value) else value


class OtpService:
    """
    Issues and checks 6-digit codes.

    Codes live in the ``otp_challenge`` table with an expiry time, one per
    phone number, and are deleted as soon as they are used, expire or run
    out of attempts. Only a hash of the code is stored.
    """

    def __init__(
        self,
        otp_repo: OtpChallengeRepository,
        customer_repo: CustomerRepository,
        sender: NotificationSender,
        config: Settings = settings,
    ):
        self._otp_repo = otp_repo
        self._customer_repo = customer_repo
        self._sender = sender
        self._ttl = timedelta(minutes=config.OTP_TTL_MINUTES)
        self._max_attempts = config.OTP_MAX_ATTEMPTS

    @staticmethod
    def _normalize(phone_number: str) -> str:
        phone = normalize_ph_number(phone_number or "")
        if not is_valid_ph_number(phone):
            raise InvalidInputError(
                "Invalid phone format. Use 63XXXXXXXXXX.", field="phone_number"
            )
        return phone

    async def request_code(self, phone_number: str, purpose: str = "verification") -> datetime:
        """
        Sends a fresh code to ``phone_number``, replacing any pending one.

        Returns:
            When the code expires.

        Raises:
            OtpDeliveryError: if the SMS could not be sent. No code is kept.
        """
        phone = self._normalize(phone_number)
        code = f"{secrets.randbelow(10**CODE_DIGITS):0{CODE_DIGITS}d}"
        expires_at = timezone.now() + self._ttl
        customer = await self._customer_repo.get_by_phone(phone)

        await self._otp_repo.delete_for_phone(phone)
        await self._otp_repo.create(
            phone_number=phone,
            code_hash=_hash_code(code),
            purpose=purpose,
            expires_at=expires_at,
            customer_id=customer.id if customer else None,
        )

        minutes = int(self._ttl.total_seconds() // 60)
        text = f"Billink: Your verification code is {code}. It expires in {minutes} minutes."
        try:
            await self._sender.send(phone, text)
        except Exception as e:
            await self._otp_repo.delete_for_phone(phone)
            logger.warning("Could not deliver OTP to %s", phone, exc_info=True)
            raise OtpDeliveryError(phone_number=phone) from e

        logger.info("OTP issued for %s (%s)", phone, purpose)
        return expires_at

    async def verify_code(self, phone_number: str, code: str) -> Customer | None:
        """
        Checks ``code`` and consumes the challenge on success.

        A matching customer, if any, has its phone marked as verified and is
        returned.
        """
        phone = self._normalize(phone_number)
        challenge = await self._otp_repo.get_for_phone(phone)
        if challenge is None:
            raise OtpNotFoundError(phone_number=phone)

        if _aware(challenge.expires_at) <= _aware(timezone.now()):
            await self._otp_repo.delete_for_phone(phone)
            raise OtpExpiredError(phone_number=phone)

        if not hmac.compare_digest(challenge.code_hash, _hash_code(str(code).strip())):
            challenge.attempts += 1
            if challenge.attempts >= self._max_attempts:
                await self._otp_repo.delete_for_phone(phone)
                logger.warning("OTP for %s discarded after %d attempts", phone, challenge.attempts)
            else:
                await challenge.save(update_fields=["attempts", "updated_at"])
            raise OtpMismatchError(phone_number=phone, attempts=challenge.attempts)

        await self._otp_repo.delete_for_phone(phone)
        customer = await self._customer_repo.get_by_phone(phone)
        if customer is not None and not customer.phone_verified:
            customer.phone_verified = True
            await customer.save(update_fields=["phone_verified", "updated_at"])
        logger.info("Phone %s verified", phone)
        return customer

    async def purge_expired(self) -> int:
        removed = await self._otp_repo.purge_expired(timezone.now())
        if removed:
            logger.info("Purged %d expired OTP challenges", removed)
        return removed
