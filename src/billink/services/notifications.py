"""Outbound SMS notifications."""

from __future__ import annotations

import logging
import re
from datetime import date
from decimal import Decimal
from typing import Protocol

import aiohttp

from billink.config import Settings, settings

logger = logging.getLogger(__name__)

PH_NUMBER_PATTERN = re.compile(r"^63\d{10}$")
MAX_SMS_LENGTH = 1000


class NotificationSender(Protocol):
    """Anything that can deliver a text message to a phone number."""

    async def send(self, recipient_phone: str, text: str) -> None: ...


def normalize_ph_number(number: str) -> str:
    """Normalizes Philippine mobile numbers to the ``63XXXXXXXXXX`` form."""
    digits = re.sub(r"[-\s]", "", str(number).strip())
    if digits.startswith("+63"):
        return "63" + digits[3:]
    if digits.startswith("09"):
        return "63" + digits[1:]
    if digits.startswith("63"):
        return digits
    if digits.startswith("9"):
        return "63" + digits
    return digits


def is_valid_ph_number(number: str) -> bool:
    return bool(PH_NUMBER_PATTERN.match(number))


class MoceanSmsSender:
    """Sends SMS through the Mocean REST API."""

    def __init__(
        self,
        api_token: str,
        brand: str = "Billink",
        api_url: str = "https://rest.moceanapi.com/rest/2/sms",
        timeout: float = 10.0,
    ):
        self._api_token = api_token
        self._brand = brand
        self._api_url = api_url
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def send(self, recipient_phone: str, text: str) -> None:
        recipient = normalize_ph_number(recipient_phone)
        if not is_valid_ph_number(recipient):
            raise ValueError(f"Invalid phone format {recipient_phone!r}. Use 63XXXXXXXXXX")

        payload = {
            "mocean-from": self._brand,
            "mocean-to": recipient,
            "mocean-text": text[:MAX_SMS_LENGTH],
        }
        headers = {"Authorization": f"Bearer {self._api_token}"}
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            async with session.post(self._api_url, data=payload, headers=headers) as response:
                response.raise_for_status()
        logger.info("SMS sent to %s", recipient)


class LoggingSender:
    """Writes messages to the log instead of delivering them."""

    async def send(self, recipient_phone: str, text: str) -> None:
        logger.info("SMS to %s (not delivered, no gateway configured): %s", recipient_phone, text)


def build_sender(config: Settings = settings) -> NotificationSender:
    """Mocean when a token is configured, otherwise the logging sender."""
    if config.MOCEAN_API_TOKEN:
        return MoceanSmsSender(
            api_token=config.MOCEAN_API_TOKEN,
            brand=config.MOCEAN_BRAND,
            api_url=config.MOCEAN_API_URL,
            timeout=config.SMS_TIMEOUT_SECONDS,
        )
    logger.warning("MOCEAN_API_TOKEN is not set; SMS will only be logged.")
    return LoggingSender()


def bill_issued_text(bill_number: str, amount: Decimal, due_date: date) -> str:
    return (
        f"Billink: New bill #{bill_number} issued for ₱{amount:.2f}. "
        f"Due on {due_date:%b %d, %Y}."
    )


def bill_paid_with_credit_text(bill_number: str, amount: Decimal) -> str:
    return f"Billink: Bill #{bill_number} was fully paid using ₱{amount:.2f} of your credit."


class Notifier:
    """Best-effort delivery: failures are logged, never raised."""

    def __init__(self, sender: NotificationSender):
        self._sender = sender

    async def notify(self, recipient_phone: str | None, text: str) -> bool:
        if not recipient_phone:
            return False
        try:
            await self._sender.send(recipient_phone, text)
        except Exception:
            logger.warning("SMS to %s failed", recipient_phone, exc_info=True)
            return False
        return True
