"""
Billing ORM Models (``invoicing_modules.billing.orm``).

Responsibility
--------------
SQLAlchemy persistence models for the billing module.  Maps the frozen
domain dataclasses from ``models.py`` to database tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``invoicing_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by the engines.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from invoicing_kernel.db.base import TrackedBase


# ---------------------------------------------------------------------------
# 1. ClientModel
# ---------------------------------------------------------------------------


class ClientModel(TrackedBase):
    """
    ORM model for billing clients.

    Maps to the ``Client`` frozen dataclass.

    Guarantees:
        - gstin is unique when present (uq_billing_clients_gstin).
        - country defaults to India, payment_terms to "Net 30".
    """

    __tablename__ = "billing_clients"

    __table_args__ = (
        UniqueConstraint("gstin", name="uq_billing_clients_gstin"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    gstin: Mapped[str | None] = mapped_column(String(15), nullable=True)
    country: Mapped[str] = mapped_column(String(100), default="India")
    payment_terms: Mapped[str] = mapped_column(String(50), default="Net 30")
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from invoicing_modules.billing.models import Client

        return Client(
            id=self.id,
            name=self.name,
            gstin=self.gstin,
            country=self.country,
            payment_terms=self.payment_terms,
            email=self.email,
        )

    @classmethod
    def from_dto(cls, dto) -> "ClientModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            name=dto.name,
            gstin=dto.gstin,
            country=dto.country,
            payment_terms=dto.payment_terms,
            email=dto.email,
        )

    def __repr__(self) -> str:
        return f"<ClientModel {self.name} gstin={self.gstin}>"


# ---------------------------------------------------------------------------
# 2. InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    ORM model for GST invoices.

    Maps to the ``Invoice`` frozen dataclass.  Line items live in a child
    table; the GST breakdown is flattened into columns.

    Guarantees:
        - invoice_number is unique (uq_billing_invoices_invoice_number).
        - Monetary fields use Decimal (Numeric(38,9) via type_annotation_map).
        - status and payment_status stored as string enum values.
    """

    __tablename__ = "billing_invoices"

    __table_args__ = (
        UniqueConstraint(
            "invoice_number", name="uq_billing_invoices_invoice_number"
        ),
        Index("idx_billing_invoices_client_id", "client_id"),
        Index("idx_billing_invoices_status", "status"),
        Index("idx_billing_invoices_due_date", "due_date"),
    )

    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("billing_clients.id"), nullable=False
    )
    project_id: Mapped[UUID | None] = mapped_column(nullable=True)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="INR")

    subtotal: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_tax: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    cgst_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    sgst_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    igst_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    cgst_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    sgst_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    igst_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    supply_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    paid_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    late_fee_applied: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    discount_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)
    discount_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="draft")
    payment_status: Mapped[str] = mapped_column(String(20), default="pending")
    payment_terms: Mapped[str] = mapped_column(String(50), default="Net 30")
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)

    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    recurring_frequency: Mapped[str | None] = mapped_column(String(20), nullable=True)
    next_invoice_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    recurring_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    recurring_count: Mapped[int] = mapped_column(default=0)
    recurring_max_occurrences: Mapped[int | None] = mapped_column(nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    terms_conditions: Mapped[str | None] = mapped_column(Text, nullable=True)

    line_items: Mapped[list["LineItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="LineItemModel.line_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from invoicing_modules.billing.models import (
            Invoice,
            InvoiceStatus,
            PaymentStatus,
            TaxBreakdown,
        )

        return Invoice(
            id=self.id,
            invoice_number=self.invoice_number,
            client_id=self.client_id,
            issue_date=self.issue_date,
            due_date=self.due_date,
            currency=self.currency,
            project_id=self.project_id,
            line_items=tuple(line.to_dto() for line in self.line_items),
            subtotal=self.subtotal,
            tax=TaxBreakdown(
                total_tax=self.total_tax,
                cgst_rate=self.cgst_rate,
                sgst_rate=self.sgst_rate,
                igst_rate=self.igst_rate,
                cgst_amount=self.cgst_amount,
                sgst_amount=self.sgst_amount,
                igst_amount=self.igst_amount,
                supply_type=self.supply_type,
            ),
            total_amount=self.total_amount,
            paid_amount=self.paid_amount,
            late_fee_applied=self.late_fee_applied,
            discount_percentage=self.discount_percentage,
            discount_amount=self.discount_amount,
            status=InvoiceStatus(self.status),
            payment_status=PaymentStatus(self.payment_status),
            payment_terms=self.payment_terms,
            payment_date=self.payment_date,
            payment_method=self.payment_method,
            is_recurring=self.is_recurring,
            recurring_frequency=self.recurring_frequency,
            next_invoice_date=self.next_invoice_date,
            recurring_end_date=self.recurring_end_date,
            recurring_count=self.recurring_count or 0,
            recurring_max_occurrences=self.recurring_max_occurrences,
            notes=self.notes,
            terms_conditions=self.terms_conditions,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def apply_dto(self, dto) -> None:
        """Copy every mutable field of ``dto`` onto this row."""
        self.invoice_number = dto.invoice_number
        self.client_id = dto.client_id
        self.project_id = dto.project_id
        self.issue_date = dto.issue_date
        self.due_date = dto.due_date
        self.currency = dto.currency
        self.subtotal = dto.subtotal
        self.total_tax = dto.tax.total_tax
        self.cgst_rate = dto.tax.cgst_rate
        self.sgst_rate = dto.tax.sgst_rate
        self.igst_rate = dto.tax.igst_rate
        self.cgst_amount = dto.tax.cgst_amount
        self.sgst_amount = dto.tax.sgst_amount
        self.igst_amount = dto.tax.igst_amount
        self.supply_type = dto.tax.supply_type
        self.total_amount = dto.total_amount
        self.paid_amount = dto.paid_amount
        self.late_fee_applied = dto.late_fee_applied
        self.discount_percentage = dto.discount_percentage
        self.discount_amount = dto.discount_amount
        self.status = dto.status.value
        self.payment_status = dto.payment_status.value
        self.payment_terms = dto.payment_terms
        self.payment_date = dto.payment_date
        self.payment_method = dto.payment_method
        self.is_recurring = dto.is_recurring
        self.recurring_frequency = dto.recurring_frequency
        self.next_invoice_date = dto.next_invoice_date
        self.recurring_end_date = dto.recurring_end_date
        self.recurring_count = dto.recurring_count
        self.recurring_max_occurrences = dto.recurring_max_occurrences
        self.notes = dto.notes
        self.terms_conditions = dto.terms_conditions
        if dto.updated_at is not None:
            self.updated_at = dto.updated_at
        existing = {line.line_id: line for line in self.line_items}
        synced: list[LineItemModel] = []
        for number, line in enumerate(dto.line_items, start=1):
            row = existing.get(line.id)
            if row is None:
                row = LineItemModel.from_dto(line, dto.id, number)
            else:
                row.apply_dto(line, number)
            synced.append(row)
        self.line_items = synced

    @classmethod
    def from_dto(cls, dto) -> "InvoiceModel":
        """Create ORM model from frozen dataclass."""
        model = cls(id=dto.id)
        if dto.created_at is not None:
            model.created_at = dto.created_at
        model.apply_dto(dto)
        return model

    def __repr__(self) -> str:
        return (
            f"<InvoiceModel {self.invoice_number} "
            f"status={self.status} total={self.total_amount}>"
        )


# ---------------------------------------------------------------------------
# 3. LineItemModel
# ---------------------------------------------------------------------------


class LineItemModel(TrackedBase):
    """
    ORM model for invoice line items.

    Maps to the ``LineItem`` frozen dataclass.  Each line belongs to
    exactly one InvoiceModel; line_number preserves order.

    The row has its own primary key; the dataclass id is stored as line_id,
    unique within an invoice, so the same LineItem may be billed on more
    than one invoice.
    """

    __tablename__ = "billing_invoice_line_items"

    __table_args__ = (
        Index("idx_billing_line_items_invoice_id", "invoice_id"),
        UniqueConstraint(
            "invoice_id", "line_id", name="uq_billing_line_items_invoice_line"
        ),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("billing_invoices.id"), nullable=False
    )
    line_id: Mapped[UUID] = mapped_column(nullable=False)
    line_number: Mapped[int] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    hsn_sac_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    item_type: Mapped[str] = mapped_column(String(20), default="service")

    invoice: Mapped["InvoiceModel"] = relationship(
        back_populates="line_items",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from invoicing_modules.billing.models import ItemType, LineItem

        return LineItem(
            id=self.line_id,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            tax_rate=self.tax_rate,
            amount=self.amount,
            tax_amount=self.tax_amount,
            hsn_sac_code=self.hsn_sac_code,
            item_type=ItemType(self.item_type),
        )

    def apply_dto(self, dto, line_number: int) -> None:
        self.line_number = line_number
        self.description = dto.description
        self.quantity = dto.quantity
        self.unit_price = dto.unit_price
        self.tax_rate = dto.tax_rate
        self.amount = dto.amount
        self.tax_amount = dto.tax_amount
        self.hsn_sac_code = dto.hsn_sac_code
        self.item_type = dto.item_type.value

    @classmethod
    def from_dto(cls, dto, invoice_id: UUID, line_number: int) -> "LineItemModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            line_id=dto.id,
            invoice_id=invoice_id,
            line_number=line_number,
            description=dto.description,
            quantity=dto.quantity,
            unit_price=dto.unit_price,
            tax_rate=dto.tax_rate,
            amount=dto.amount,
            tax_amount=dto.tax_amount,
            hsn_sac_code=dto.hsn_sac_code,
            item_type=dto.item_type.value,
        )

    def __repr__(self) -> str:
        return f"<LineItemModel line={self.line_number} amount={self.amount}>"


# ---------------------------------------------------------------------------
# 4. PaymentRecordModel
# ---------------------------------------------------------------------------


class PaymentRecordModel(TrackedBase):
    """
    ORM model for payment records.  Rows are append-only.
    """

    __tablename__ = "billing_payments"

    __table_args__ = (
        Index("idx_billing_payments_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("billing_invoices.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="INR")
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from invoicing_modules.billing.models import PaymentRecord

        return PaymentRecord(
            id=self.id,
            invoice_id=self.invoice_id,
            amount=self.amount,
            payment_date=self.payment_date,
            method=self.method,
            currency=self.currency,
            reference=self.reference,
        )

    @classmethod
    def from_dto(cls, dto) -> "PaymentRecordModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            invoice_id=dto.invoice_id,
            amount=dto.amount,
            currency=dto.currency,
            payment_date=dto.payment_date,
            method=dto.method,
            reference=dto.reference,
        )

    def __repr__(self) -> str:
        return f"<PaymentRecordModel invoice={self.invoice_id} amount={self.amount}>"


# ---------------------------------------------------------------------------
# 5. LateFeeRuleModel
# ---------------------------------------------------------------------------


class LateFeeRuleModel(TrackedBase):
    """
    ORM model for late-fee rules.

    Maps to the engine's ``LateFeeRule`` frozen dataclass.
    """

    __tablename__ = "billing_late_fee_rules"

    __table_args__ = (
        UniqueConstraint("name", name="uq_billing_late_fee_rules_name"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    fee_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    grace_period_days: Mapped[int] = mapped_column(default=0)
    max_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from invoicing_engines.late_fees import LateFeeRule

        return LateFeeRule(
            id=self.id,
            name=self.name,
            fee_type=self.fee_type,
            amount=self.amount,
            grace_period_days=self.grace_period_days,
            max_amount=self.max_amount,
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(cls, dto) -> "LateFeeRuleModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            name=dto.name,
            fee_type=dto.fee_type.value,
            amount=dto.amount,
            grace_period_days=dto.grace_period_days,
            max_amount=dto.max_amount,
            is_active=dto.is_active,
        )

    def __repr__(self) -> str:
        return f"<LateFeeRuleModel {self.name} {self.fee_type}={self.amount}>"


# ---------------------------------------------------------------------------
# 6. LateFeeApplicationModel
# ---------------------------------------------------------------------------


class LateFeeApplicationModel(TrackedBase):
    """
    ORM model for applied late fees.

    Guarantees:
        - At most one row per (invoice_id, rule_id)
          (uq_billing_late_fee_applications_invoice_rule).
    """

    __tablename__ = "billing_late_fee_applications"

    __table_args__ = (
        UniqueConstraint(
            "invoice_id", "rule_id",
            name="uq_billing_late_fee_applications_invoice_rule",
        ),
        Index("idx_billing_late_fee_applications_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("billing_invoices.id"), nullable=False
    )
    rule_id: Mapped[UUID] = mapped_column(
        ForeignKey("billing_late_fee_rules.id"), nullable=False
    )
    rule_name: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    applied_on: Mapped[date] = mapped_column(Date, nullable=False)
    days_overdue: Mapped[int] = mapped_column(nullable=False)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from invoicing_modules.billing.models import LateFeeApplication

        return LateFeeApplication(
            id=self.id,
            invoice_id=self.invoice_id,
            rule_id=self.rule_id,
            rule_name=self.rule_name,
            amount=self.amount,
            applied_on=self.applied_on,
            days_overdue=self.days_overdue,
        )

    @classmethod
    def from_dto(cls, dto) -> "LateFeeApplicationModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            invoice_id=dto.invoice_id,
            rule_id=dto.rule_id,
            rule_name=dto.rule_name,
            amount=dto.amount,
            applied_on=dto.applied_on,
            days_overdue=dto.days_overdue,
        )

    def __repr__(self) -> str:
        return (
            f"<LateFeeApplicationModel invoice={self.invoice_id} "
            f"rule={self.rule_name} amount={self.amount}>"
        )
