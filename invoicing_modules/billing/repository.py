"""
Billing persistence contract and its SQLAlchemy implementation.

The lifecycle operations never touch storage; ``InvoiceService`` reads
snapshots through an ``InvoiceRepository``, runs the engines and writes the
results back.  The repository never commits -- the service owns the
transaction boundary.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from invoicing_engines.late_fees import LateFeeRule
from invoicing_kernel.exceptions import ClientNotFoundError, InvoiceNotFoundError
from invoicing_kernel.logging_config import get_logger
from invoicing_modules.billing.models import (
    Client,
    Invoice,
    InvoiceStatus,
    LateFeeApplication,
    PaymentRecord,
)
from invoicing_modules.billing.orm import (
    ClientModel,
    InvoiceModel,
    LateFeeApplicationModel,
    LateFeeRuleModel,
    PaymentRecordModel,
)

logger = get_logger("modules.billing.repository")


class InvoiceRepository(Protocol):
    """Storage operations the billing service depends on."""

    def get_invoice(self, invoice_id: UUID) -> Invoice: ...

    def get_client(self, client_id: UUID) -> Client: ...

    def list_invoices(
        self, statuses: Iterable[InvoiceStatus] | None = None,
    ) -> list[Invoice]: ...

    def list_active_late_fee_rules(self) -> list[LateFeeRule]: ...

    def list_late_fee_applications(self, invoice_id: UUID) -> list[LateFeeApplication]: ...

    def list_payments(self, invoice_id: UUID) -> list[PaymentRecord]: ...

    def save_client(self, client: Client) -> None: ...

    def save_invoice(self, invoice: Invoice) -> None: ...

    def save_late_fee_rule(self, rule: LateFeeRule) -> None: ...

    def append_late_fee_application(self, application: LateFeeApplication) -> None: ...

    def append_payment(self, record: PaymentRecord) -> None: ...


class SqlAlchemyInvoiceRepository:
    """``InvoiceRepository`` over a SQLAlchemy session."""

    def __init__(self, session: Session):
        self._session = session

    # Reads

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        model = self._session.get(InvoiceModel, invoice_id)
        if model is None:
            logger.warning("invoice_not_found", extra={"invoice_id": str(invoice_id)})
            raise InvoiceNotFoundError(str(invoice_id))
        return model.to_dto()

    def get_client(self, client_id: UUID) -> Client:
        model = self._session.get(ClientModel, client_id)
        if model is None:
            logger.warning("client_not_found", extra={"client_id": str(client_id)})
            raise ClientNotFoundError(str(client_id))
        return model.to_dto()

    def list_invoices(
        self, statuses: Iterable[InvoiceStatus] | None = None,
    ) -> list[Invoice]:
        stmt = select(InvoiceModel).order_by(InvoiceModel.issue_date, InvoiceModel.invoice_number)
        if statuses is not None:
            stmt = stmt.where(InvoiceModel.status.in_([s.value for s in statuses]))
        return [m.to_dto() for m in self._session.scalars(stmt)]

    def list_active_late_fee_rules(self) -> list[LateFeeRule]:
        stmt = (
            select(LateFeeRuleModel)
            .where(LateFeeRuleModel.is_active.is_(True))
            .order_by(LateFeeRuleModel.name)
        )
        return [m.to_dto() for m in self._session.scalars(stmt)]

    def list_late_fee_applications(self, invoice_id: UUID) -> list[LateFeeApplication]:
        stmt = (
            select(LateFeeApplicationModel)
            .where(LateFeeApplicationModel.invoice_id == invoice_id)
            .order_by(LateFeeApplicationModel.applied_on)
        )
        return [m.to_dto() for m in self._session.scalars(stmt)]

    def list_payments(self, invoice_id: UUID) -> list[PaymentRecord]:
        stmt = (
            select(PaymentRecordModel)
            .where(PaymentRecordModel.invoice_id == invoice_id)
            .order_by(PaymentRecordModel.payment_date)
        )
        return [m.to_dto() for m in self._session.scalars(stmt)]

    # Writes

    def save_client(self, client: Client) -> None:
        model = self._session.get(ClientModel, client.id)
        if model is None:
            self._session.add(ClientModel.from_dto(client))
            return
        model.name = client.name
        model.gstin = client.gstin
        model.country = client.country
        model.payment_terms = client.payment_terms
        model.email = client.email

    def save_invoice(self, invoice: Invoice) -> None:
        model = self._session.get(InvoiceModel, invoice.id)
        if model is None:
            self._session.add(InvoiceModel.from_dto(invoice))
        else:
            model.apply_dto(invoice)
        self._session.flush()

    def save_late_fee_rule(self, rule: LateFeeRule) -> None:
        model = self._session.get(LateFeeRuleModel, rule.id)
        if model is None:
            self._session.add(LateFeeRuleModel.from_dto(rule))
            return
        model.name = rule.name
        model.fee_type = rule.fee_type.value
        model.amount = rule.amount
        model.grace_period_days = rule.grace_period_days
        model.max_amount = rule.max_amount
        model.is_active = rule.is_active

    def append_late_fee_application(self, application: LateFeeApplication) -> None:
        self._session.add(LateFeeApplicationModel.from_dto(application))
        self._session.flush()

    def append_payment(self, record: PaymentRecord) -> None:
        self._session.add(PaymentRecordModel.from_dto(record))
        self._session.flush()
