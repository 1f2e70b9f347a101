"""
contract_ledger/gateway.py

Persistence gateway: generic table CRUD over Flask-SQLAlchemy.

Routes and the audit worker talk to tables by name and get plain row dicts
back. Every database failure leaves as a DataAccessError carrying a
PostgreSQL-style code:

- 42P01     table does not exist (feature not provisioned)
- 42703     unknown column in a filter/order/payload
- 42501     write refused (audit_logs is append-only)
- PGRST116  row not found (RecordNotFound)
- 23000     integrity violation (or the driver's own pgcode)
- DB_ERROR  anything else

IMPORTANT:
- Each mutating call commits its own transaction. There are no
  multi-table transactions; callers join independent selects in memory.
- delete() goes through the ORM so relationship cascades apply
  (contract -> items -> deliveries, ...).
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from sqlalchemy import func, select as sa_select
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError, SQLAlchemyError

from .errors import (
    GENERIC,
    INSUFFICIENT_PRIVILEGE,
    INTEGRITY,
    MISSING_RELATION,
    UNDEFINED_COLUMN,
    DataAccessError,
    RecordNotFound,
)
from .extensions import db
from .models import (
    Attachment,
    AuditLog,
    Contract,
    ContractExpense,
    ContractItem,
    ContractPurchase,
    Delivery,
    DeliveryReceipt,
    Payment,
    Supplier,
    User,
)

Row = Dict[str, Any]
Order = Union[str, Sequence[str], None]

TABLES = {
    model.__tablename__: model
    for model in (
        User,
        Contract,
        ContractItem,
        ContractPurchase,
        ContractExpense,
        Delivery,
        DeliveryReceipt,
        Payment,
        Attachment,
        Supplier,
        AuditLog,
    )
}

APPEND_ONLY = {"audit_logs"}


def row_from_model(instance: Any) -> Row:
    """Column snapshot of an ORM instance (native Python values)."""
    return {column.name: getattr(instance, column.key) for column in instance.__table__.columns}


class Gateway:
    """Table-name based CRUD. Uses the Flask-SQLAlchemy scoped session."""

    def __init__(self, tables: Optional[Mapping[str, Any]] = None):
        self.tables = dict(tables if tables is not None else TABLES)

    # -----------------------------------------------------------------
    # Resolution
    # -----------------------------------------------------------------
    def _model(self, table: str):
        model = self.tables.get(table)
        if model is None:
            raise DataAccessError(MISSING_RELATION, f'relation "{table}" does not exist')
        return model

    def _column(self, model, name: str):
        column = model.__table__.columns.get(name)
        if column is None:
            raise DataAccessError(UNDEFINED_COLUMN, f'column "{name}" of relation "{model.__tablename__}" does not exist')
        return column

    def _check_payload(self, model, values: Mapping[str, Any]) -> None:
        for name in values:
            self._column(model, name)

    def _where(self, model, stmt, filters: Optional[Mapping[str, Any]]):
        for name, value in (filters or {}).items():
            column = self._column(model, name)
            if value is None:
                stmt = stmt.where(column.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                stmt = stmt.where(column.in_(list(value)))
            else:
                stmt = stmt.where(column == value)
        return stmt

    def _order(self, model, stmt, order: Order):
        if not order:
            return stmt
        for term in [order] if isinstance(order, str) else order:
            if term.startswith("-"):
                stmt = stmt.order_by(self._column(model, term[1:]).desc())
            else:
                stmt = stmt.order_by(self._column(model, term).asc())
        return stmt

    # -----------------------------------------------------------------
    # Error translation
    # -----------------------------------------------------------------
    def _fail(self, table: str, exc: SQLAlchemyError) -> DataAccessError:
        db.session.rollback()

        orig = getattr(exc, "orig", None)
        pgcode = getattr(orig, "pgcode", None)
        text = str(orig if orig is not None else exc)

        if pgcode:
            return DataAccessError(pgcode, text)
        if isinstance(exc, (OperationalError, ProgrammingError)) and "no such table" in text:
            return DataAccessError(MISSING_RELATION, f'relation "{table}" does not exist')
        if isinstance(exc, OperationalError) and "no such column" in text:
            return DataAccessError(UNDEFINED_COLUMN, text)
        if isinstance(exc, IntegrityError):
            return DataAccessError(INTEGRITY, text)
        return DataAccessError(GENERIC, text)

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------
    def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order: Order = None,
        limit: Optional[int] = None,
    ) -> List[Row]:
        """
        Rows of `table` as dicts.

        filters: {column: value}; a list/tuple/set means IN, None means IS NULL.
        order: "column" ascending, "-column" descending, or a list of both.
        """
        model = self._model(table)
        stmt = self._order(model, self._where(model, sa_select(model), filters), order)
        if limit is not None:
            stmt = stmt.limit(int(limit))

        try:
            instances = db.session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            raise self._fail(table, exc) from exc
        return [row_from_model(obj) for obj in instances]

    def get(self, table: str, record_id: Any) -> Optional[Row]:
        model = self._model(table)
        try:
            obj = db.session.get(model, record_id)
        except SQLAlchemyError as exc:
            raise self._fail(table, exc) from exc
        return row_from_model(obj) if obj is not None else None

    def count(self, table: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        model = self._model(table)
        stmt = self._where(model, sa_select(func.count()).select_from(model), filters)
        try:
            return int(db.session.execute(stmt).scalar_one())
        except SQLAlchemyError as exc:
            raise self._fail(table, exc) from exc

    # -----------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------
    def insert(self, table: str, values: Mapping[str, Any]) -> Row:
        model = self._model(table)
        self._check_payload(model, values)

        obj = model(**dict(values))
        try:
            db.session.add(obj)
            db.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail(table, exc) from exc
        return row_from_model(obj)

    def insert_many(self, table: str, rows: Iterable[Mapping[str, Any]]) -> List[Row]:
        """Insert several rows in one transaction."""
        model = self._model(table)
        objs = []
        for values in rows:
            self._check_payload(model, values)
            objs.append(model(**dict(values)))

        try:
            db.session.add_all(objs)
            db.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail(table, exc) from exc
        return [row_from_model(obj) for obj in objs]

    def update(self, table: str, record_id: Any, patch: Mapping[str, Any]) -> Row:
        model = self._model(table)
        if table in APPEND_ONLY:
            raise DataAccessError(INSUFFICIENT_PRIVILEGE, f'permission denied: "{table}" is append-only')
        self._check_payload(model, patch)

        try:
            obj = db.session.get(model, record_id)
            if obj is None:
                raise RecordNotFound(table, record_id)
            for name, value in patch.items():
                setattr(obj, model.__table__.columns[name].key, value)
            db.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail(table, exc) from exc
        return row_from_model(obj)

    def delete(self, table: str, record_id: Any) -> None:
        model = self._model(table)
        if table in APPEND_ONLY:
            raise DataAccessError(INSUFFICIENT_PRIVILEGE, f'permission denied: "{table}" is append-only')

        try:
            obj = db.session.get(model, record_id)
            if obj is None:
                raise RecordNotFound(table, record_id)
            db.session.delete(obj)
            db.session.commit()
        except SQLAlchemyError as exc:
            raise self._fail(table, exc) from exc


gateway = Gateway()
