"""Tests for one-time-code phone verification."""

import re
from datetime import timedelta

import pytest
from tortoise import timezone

from billink.core.errors import (
    InvalidInputError,
    OtpDeliveryError,
    OtpExpiredError,
    OtpMismatchError,
    OtpNotFoundError,
)
from billink.core.models import Customer, OtpChallenge

PHONE = "639171234567"


def _last_code(sender) -> str:
    _, text = sender.sent[-1]
    return re.search(r"code is (\d{6})\.", text).group(1)


@pytest.mark.asyncio
async def test_request_and_verify_marks_phone_verified(services, sender, make_customer):
    customer = await make_customer(phone_number=PHONE)

    expires_at = await services.otp.request_code("0917 123 4567")

    assert expires_at > timezone.now()
    phone, text = sender.sent[-1]
    assert phone == PHONE
    assert text.endswith("It expires in 5 minutes.")
    challenge = await OtpChallenge.get(phone_number=PHONE)
    assert challenge.code_hash != _last_code(sender)
    assert challenge.customer_id == customer.id

    verified = await services.otp.verify_code("+639171234567", _last_code(sender))

    assert verified.id == customer.id
    assert (await Customer.get(id=customer.id)).phone_verified is True
    assert not await OtpChallenge.filter(phone_number=PHONE).exists()

    with pytest.raises(OtpNotFoundError):
        await services.otp.verify_code(PHONE, _last_code(sender))


@pytest.mark.asyncio
async def test_unknown_phone_verifies_without_customer(services, sender):
    await services.otp.request_code(PHONE)

    assert await services.otp.verify_code(PHONE, _last_code(sender)) is None


@pytest.mark.asyncio
async def test_new_request_replaces_pending_code(services, sender):
    await services.otp.request_code(PHONE)
    await services.otp.request_code(PHONE)

    assert await OtpChallenge.filter(phone_number=PHONE).count() == 1
    await services.otp.verify_code(PHONE, _last_code(sender))


@pytest.mark.asyncio
async def test_wrong_code_counts_attempts(services, sender):
    await services.otp.request_code(PHONE)
    wrong = "000000" if _last_code(sender) != "000000" else "111111"

    for attempt in range(1, 5):
        with pytest.raises(OtpMismatchError) as exc_info:
            await services.otp.verify_code(PHONE, wrong)
        assert exc_info.value.context["attempts"] == attempt
    assert (await OtpChallenge.get(phone_number=PHONE)).attempts == 4

    with pytest.raises(OtpMismatchError):
        await services.otp.verify_code(PHONE, wrong)
    assert not await OtpChallenge.filter(phone_number=PHONE).exists()

    with pytest.raises(OtpNotFoundError):
        await services.otp.verify_code(PHONE, _last_code(sender))


@pytest.mark.asyncio
async def test_expired_code_is_rejected_and_removed(services, sender):
    await services.otp.request_code(PHONE)
    await OtpChallenge.filter(phone_number=PHONE).update(
        expires_at=timezone.now() - timedelta(minutes=1)
    )

    with pytest.raises(OtpExpiredError):
        await services.otp.verify_code(PHONE, _last_code(sender))
    assert not await OtpChallenge.filter(phone_number=PHONE).exists()


@pytest.mark.asyncio
async def test_delivery_failure_keeps_no_code(failing_services):
    with pytest.raises(OtpDeliveryError):
        await failing_services.otp.request_code(PHONE)

    assert not await OtpChallenge.filter(phone_number=PHONE).exists()


@pytest.mark.asyncio
@pytest.mark.parametrize("phone", ["12345", "", "0817123456"])
async def test_invalid_phone(services, sender, phone):
    with pytest.raises(InvalidInputError):
        await services.otp.request_code(phone)
    assert sender.sent == []


@pytest.mark.asyncio
async def test_purge_expired(services):
    await services.otp.request_code(PHONE)
    await services.otp.request_code("639181112222")
    await OtpChallenge.filter(phone_number=PHONE).update(
        expires_at=timezone.now() - timedelta(seconds=1)
    )

    assert await services.otp.purge_expired() == 1
    assert await OtpChallenge.all().count() == 1
