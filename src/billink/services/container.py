"""Wires repositories and services together."""

from __future__ import annotations

from dataclasses import dataclass

from billink.config import Settings, settings
from billink.core.repositories.audit import AuditLogRepository
from billink.core.repositories.bill import BillRepository
from billink.core.repositories.credit import CreditTransactionRepository
from billink.core.repositories.customer import CustomerRepository
from billink.core.repositories.otp import OtpChallengeRepository
from billink.core.repositories.payment import (
    PaymentRecordRepository,
    PaymentSubmissionRepository,
)
from billink.core.repositories.rate import RateTierRepository
from billink.core.repositories.setting import SystemSettingRepository
from billink.services.audit import AuditService
from billink.services.billing import BillingCalculator, BillingService
from billink.services.credit import CreditLedger
from billink.services.notifications import NotificationSender, Notifier, build_sender
from billink.services.otp import OtpService
from billink.services.penalty import PenaltyService
from billink.services.reports import ReportService
from billink.services.settings import SettingsService
from billink.services.settlement import SettlementService


@dataclass(frozen=True)
class Services:
    customers: CustomerRepository
    bills: BillRepository
    submissions: PaymentSubmissionRepository
    audit: AuditService
    settings: SettingsService
    calculator: BillingCalculator
    billing: BillingService
    credit: CreditLedger
    settlement: SettlementService
    penalty: PenaltyService
    reports: ReportService
    otp: OtpService


def build_services(
    sender: NotificationSender | None = None, config: Settings = settings
) -> Services:
    """Builds the service graph. ``sender`` defaults to the configured SMS gateway."""
    sender = sender or build_sender(config)
    notifier = Notifier(sender)

    customer_repo = CustomerRepository()
    bill_repo = BillRepository()
    payment_repo = PaymentRecordRepository()
    submission_repo = PaymentSubmissionRepository()
    transaction_repo = CreditTransactionRepository()

    audit = AuditService(AuditLogRepository())
    settings_service = SettingsService(
        SystemSettingRepository(), RateTierRepository(), audit, defaults=config
    )
    calculator = BillingCalculator(settings_service)
    ledger = CreditLedger(
        customer_repo, transaction_repo, bill_repo, payment_repo, audit, notifier
    )
    billing = BillingService(
        customer_repo,
        bill_repo,
        payment_repo,
        calculator,
        ledger,
        audit,
        notifier,
        config=config,
    )
    penalty = PenaltyService(bill_repo, settings_service, audit, config=config)

    return Services(
        customers=customer_repo,
        bills=bill_repo,
        submissions=submission_repo,
        audit=audit,
        settings=settings_service,
        calculator=calculator,
        billing=billing,
        credit=ledger,
        settlement=SettlementService(
            bill_repo, payment_repo, submission_repo, ledger, audit
        ),
        penalty=penalty,
        reports=ReportService(bill_repo, customer_repo, transaction_repo, penalty),
        otp=OtpService(OtpChallengeRepository(), customer_repo, sender, config=config),
    )
