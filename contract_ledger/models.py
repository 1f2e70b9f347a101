"""
Contract Ledger – Domain Models

Tables backing the persistence gateway:
- users (login accounts)
- contracts and their detail tables: contract_items, contract_purchases,
  contract_expenses, deliveries, delivery_receipts, payments, attachments
- suppliers
- audit_logs (append-only)

IMPORTANT:
- A contract's currency is fixed at creation; nothing here converts amounts.
- Money and quantities are Numeric(12, 2) and surface as Decimal.
- Deleting a contract cascades to every detail row (see relationships below).
"""

from __future__ import annotations

from datetime import datetime

from flask_login import UserMixin
from sqlalchemy import event
from werkzeug.security import generate_password_hash, check_password_hash

from .extensions import db


# ---------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------
DEFAULT_CURRENCY = "SAR"

CURRENCIES = ["SAR", "USD", "EUR", "AED", "EGP", "KWD", "QAR", "OMR", "BHD", "JOD"]

CONTRACT_STATUSES = ["new", "in_progress", "completed", "paid"]

EXPENSE_TYPES = ["نقل", "تحميل وتنزيل", "تخزين", "اتصالات", "عمولة", "أخرى"]


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """System login user."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)

    is_active = db.Column(db.Boolean, default=True, nullable=False)

    last_sign_in_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f"<User {self.username}>"


# ---------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------
class Supplier(db.Model):
    __tablename__ = "suppliers"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    phone = db.Column(db.String(50), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    # Deleting a supplier leaves its purchases in place with supplier_id = NULL
    purchases = db.relationship("ContractPurchase", back_populates="supplier")

    def __repr__(self):
        return f"<Supplier {self.name}>"


# ---------------------------------------------------------------------
# Contract domain
# ---------------------------------------------------------------------
class Contract(db.Model):
    __tablename__ = "contracts"

    id = db.Column(db.Integer, primary_key=True)

    contract_number = db.Column(db.String(100), nullable=False, index=True)
    governorate = db.Column(db.String(120), nullable=False, index=True)
    branch = db.Column(db.String(120), nullable=False, index=True)
    contract_date = db.Column(db.Date, nullable=False, index=True)

    currency = db.Column(db.String(3), nullable=False, default=DEFAULT_CURRENCY, index=True)
    status = db.Column(db.String(20), nullable=False, default="new", index=True)

    notes = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = db.relationship("ContractItem", back_populates="contract", cascade="all, delete-orphan")
    purchases = db.relationship("ContractPurchase", back_populates="contract", cascade="all, delete-orphan")
    expenses = db.relationship("ContractExpense", back_populates="contract", cascade="all, delete-orphan")
    payments = db.relationship("Payment", back_populates="contract", cascade="all, delete-orphan")
    receipts = db.relationship("DeliveryReceipt", back_populates="contract", cascade="all, delete-orphan")
    attachments = db.relationship("Attachment", back_populates="contract", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Contract {self.contract_number} ({self.currency})>"


class ContractItem(db.Model):
    __tablename__ = "contract_items"

    id = db.Column(db.Integer, primary_key=True)

    contract_id = db.Column(
        db.Integer,
        db.ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    item_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    sale_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    # legacy cost source; actual procurement lives in contract_purchases
    purchase_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    contract = db.relationship("Contract", back_populates="items")
    deliveries = db.relationship("Delivery", back_populates="item", cascade="all, delete-orphan")


class ContractPurchase(db.Model):
    __tablename__ = "contract_purchases"

    id = db.Column(db.Integer, primary_key=True)

    contract_id = db.Column(
        db.Integer,
        db.ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    item_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    purchase_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    supplier_id = db.Column(
        db.Integer,
        db.ForeignKey("suppliers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    purchase_date = db.Column(db.Date, nullable=True, index=True)
    invoice_number = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    contract = db.relationship("Contract", back_populates="purchases")
    supplier = db.relationship("Supplier", back_populates="purchases")


class ContractExpense(db.Model):
    __tablename__ = "contract_expenses"

    id = db.Column(db.Integer, primary_key=True)

    contract_id = db.Column(
        db.Integer,
        db.ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    expense_type = db.Column(db.String(80), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    expense_date = db.Column(db.Date, nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    contract = db.relationship("Contract", back_populates="expenses")


class Delivery(db.Model):
    """Partial fulfillment of one contract item."""

    __tablename__ = "deliveries"

    id = db.Column(db.Integer, primary_key=True)

    contract_item_id = db.Column(
        db.Integer,
        db.ForeignKey("contract_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    quantity_delivered = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    delivery_date = db.Column(db.Date, nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    item = db.relationship("ContractItem", back_populates="deliveries")


class DeliveryReceipt(db.Model):
    """Signed delivery document. Independent of item-level deliveries."""

    __tablename__ = "delivery_receipts"

    id = db.Column(db.Integer, primary_key=True)

    contract_id = db.Column(
        db.Integer,
        db.ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    receipt_number = db.Column(db.String(50), nullable=False, index=True)
    delivery_date = db.Column(db.Date, nullable=True, index=True)
    recipient_name = db.Column(db.String(255), nullable=True)
    recipient_phone = db.Column(db.String(50), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    contract = db.relationship("Contract", back_populates="receipts")


class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)

    contract_id = db.Column(
        db.Integer,
        db.ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    payment_date = db.Column(db.Date, nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    contract = db.relationship("Contract", back_populates="payments")


class Attachment(db.Model):
    """Metadata of a file kept in the blob store (file_url is the storage path)."""

    __tablename__ = "attachments"

    id = db.Column(db.Integer, primary_key=True)

    contract_id = db.Column(
        db.Integer,
        db.ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    file_url = db.Column(db.String(500), nullable=False)
    file_type = db.Column(db.String(120), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    contract = db.relationship("Contract", back_populates="attachments")


# ---------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------
class AuditLog(db.Model):
    """Append-only audit entry. Never updated or deleted by the application."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)
    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.String(64), nullable=False, index=True)

    details = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)


@event.listens_for(AuditLog, "before_update")
def _audit_log_is_immutable(mapper, connection, target):
    raise ValueError("audit_logs rows are immutable")


@event.listens_for(AuditLog, "before_delete")
def _audit_log_is_not_deletable(mapper, connection, target):
    raise ValueError("audit_logs rows cannot be deleted")
