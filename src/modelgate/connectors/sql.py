# src/modelgate/connectors/sql.py

from __future__ import annotations

"""
SQLAlchemy Core connector.

Key design:
- Tables are NEVER created implicitly. Creating tables is a deliberate
  action via install(); validate() checks an existing schema.
- One table per Model: `model.metadata["table"]` or the model name.
  Columns:
    id     String primary key (uuid4 hex)
    <one column per non-custom field> (FieldSpec.name overrides the column name)
- Driver errors are reported through the callback as ModelgateDbError.
"""

import logging
import uuid
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

import sqlalchemy as sa
from sqlalchemy import Column, MetaData, Table
from sqlalchemy.exc import SQLAlchemyError

from ..collection import Collection
from ..config import DatabaseSettings
from ..connector import Callback, record_id, record_payload
from ..database import DbHandle, SessionManager, normalize_db_handle
from ..exceptions import ModelgateDbError, RecordNotFoundError, ValidationError
from ..fields import FieldSpec
from ..instance import Instance
from .memory import request_login

if TYPE_CHECKING:
    from ..model import Model

logger = logging.getLogger(__name__)

_COLUMN_TYPES: Dict[type, Any] = {
    str: sa.String,
    int: sa.Integer,
    float: sa.Float,
    bool: sa.Boolean,
}


def _column_type(spec: FieldSpec) -> Any:
    col_type = _COLUMN_TYPES.get(spec.type)
    if col_type is None:
        return sa.JSON()
    if col_type is sa.String and spec.maxlength:
        return sa.String(spec.maxlength)
    return col_type()


def _db_error(exc: SQLAlchemyError) -> ModelgateDbError:
    err = ModelgateDbError(f"database error: {exc}")
    err.__cause__ = exc
    return err


class SqlConnector:
    """Connector storing each Model in a relational table."""

    name = "sql"

    def __init__(
        self,
        db: DbHandle,
        *,
        schema: Optional[str] = None,
        metadata: Optional[MetaData] = None,
        request: Any = None,
        login: Any = None,
    ) -> None:
        self._db: SessionManager = normalize_db_handle(db)
        self._schema = schema
        self._metadata = metadata if metadata is not None else MetaData(schema=schema)
        self.request = request
        self.login = login

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "SqlConnector":
        return cls(SessionManager.from_settings(settings), schema=settings.default_schema)

    # ------------------------------------------------------------------ #
    # Schema
    # ------------------------------------------------------------------ #

    @staticmethod
    def table_name(model: "Model") -> str:
        return str(model.metadata.get("table") or model.name)

    def table_for(self, model: "Model") -> Table:
        name = self.table_name(model)
        key = f"{self._schema}.{name}" if self._schema else name
        columns = [Column("id", sa.String(64), primary_key=True)]
        for field, spec in model.fields.items():
            if spec.custom:
                continue
            columns.append(Column(spec.column_name(field), _column_type(spec), nullable=not spec.required))

        existing = self._metadata.tables.get(key)
        if existing is None:
            return Table(name, self._metadata, *columns)
        wanted = {c.name for c in columns}
        have = {c.name for c in existing.columns}
        if wanted != have:
            raise ModelgateDbError(
                f"table {name!r} is already mapped with columns {sorted(have)}; "
                f"model {model.name!r} needs {sorted(wanted)}"
            )
        return existing

    def _resolve(self, model: "Model", callback: Callback) -> Optional[Table]:
        try:
            return self.table_for(model)
        except ModelgateDbError as e:
            callback(e, None)
            return None

    def install(self, model: "Model") -> Table:
        """Create the model's table if it does not exist."""
        table = self.table_for(model)
        with self._db.transaction() as conn:
            table.create(conn, checkfirst=True)
        logger.info("Installed table %r for model %r", table.name, model.name)
        return table

    def validate(self, model: "Model") -> None:
        """Raise ModelgateDbError if the model's table is missing or lacks columns."""
        table = self.table_for(model)
        insp = sa.inspect(self._db.engine)
        if not insp.has_table(table.name, schema=self._schema):
            raise ModelgateDbError(f"table {table.name!r} for model {model.name!r} does not exist")
        present = {c["name"] for c in insp.get_columns(table.name, schema=self._schema)}
        missing = sorted(c.name for c in table.columns if c.name not in present)
        if missing:
            raise ModelgateDbError(f"table {table.name!r} is missing columns: {', '.join(missing)}")

    # ------------------------------------------------------------------ #
    # Row <-> Instance
    # ------------------------------------------------------------------ #

    @staticmethod
    def _row_values(model: "Model", values: Mapping[str, Any]) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for field, spec in model.fields.items():
            if spec.custom or field not in values:
                continue
            out[spec.column_name(field)] = values[field]
        return out

    @staticmethod
    def _to_instance(model: "Model", row: Any) -> Instance:
        mapping = row._mapping
        values = {}
        for field, spec in model.fields.items():
            col = spec.column_name(field)
            if not spec.custom and col in mapping:
                values[field] = mapping[col]
        return Instance(model, values, record_id=mapping["id"])

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def create(self, model: "Model", values: Mapping[str, Any], callback: Callback) -> None:
        table = self._resolve(model, callback)
        if table is None:
            return
        instance = Instance(model, record_payload(values), record_id=uuid.uuid4().hex)
        row = {"id": instance.id, **self._row_values(model, instance.values())}
        try:
            with self._db.transaction() as conn:
                conn.execute(sa.insert(table).values(**row))
        except SQLAlchemyError as e:
            logger.warning("Insert into %r failed: %s", table.name, e)
            callback(_db_error(e), None)
            return
        callback(None, instance)

    def save(self, model: "Model", instance: Any, callback: Callback) -> None:
        table = self._resolve(model, callback)
        if table is None:
            return
        rid = record_id(instance)
        row = self._row_values(model, record_payload(instance))
        try:
            with self._db.transaction() as conn:
                if row:
                    result = conn.execute(sa.update(table).where(table.c.id == rid).values(**row))
                    found = result.rowcount > 0
                else:
                    found = conn.execute(sa.select(table.c.id).where(table.c.id == rid)).first() is not None
                stored = conn.execute(sa.select(table).where(table.c.id == rid)).first() if found else None
        except SQLAlchemyError as e:
            callback(_db_error(e), None)
            return
        if stored is None:
            callback(RecordNotFoundError(model.name, rid), None)
            return
        callback(None, instance if isinstance(instance, Instance) else self._to_instance(model, stored))

    def delete(self, model: "Model", instance: Any, callback: Callback) -> None:
        table = self._resolve(model, callback)
        if table is None:
            return
        rid = record_id(instance)
        try:
            with self._db.transaction() as conn:
                row = conn.execute(sa.select(table).where(table.c.id == rid)).first()
                if row is not None:
                    conn.execute(sa.delete(table).where(table.c.id == rid))
        except SQLAlchemyError as e:
            callback(_db_error(e), None)
            return
        if row is None:
            callback(RecordNotFoundError(model.name, rid), None)
            return
        callback(None, instance if isinstance(instance, Instance) else self._to_instance(model, row))

    def delete_all(self, model: "Model", callback: Callback) -> None:
        table = self._resolve(model, callback)
        if table is None:
            return
        try:
            with self._db.transaction() as conn:
                count = conn.execute(sa.select(sa.func.count()).select_from(table)).scalar_one()
                conn.execute(sa.delete(table))
        except SQLAlchemyError as e:
            callback(_db_error(e), None)
            return
        callback(None, count)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def _select(self, model: "Model", stmt: Any, callback: Callback) -> None:
        try:
            with self._db.transaction() as conn:
                rows = conn.execute(stmt).all()
        except SQLAlchemyError as e:
            callback(_db_error(e), None)
            return
        callback(None, Collection(model, [self._to_instance(model, r) for r in rows]))

    def find_one(self, model: "Model", record_id: Any, callback: Callback) -> None:
        table = self._resolve(model, callback)
        if table is None:
            return
        try:
            with self._db.transaction() as conn:
                row = conn.execute(sa.select(table).where(table.c.id == record_id)).first()
        except SQLAlchemyError as e:
            callback(_db_error(e), None)
            return
        callback(None, self._to_instance(model, row) if row is not None else None)

    def find_all(self, model: "Model", callback: Callback) -> None:
        table = self._resolve(model, callback)
        if table is None:
            return
        self._select(model, sa.select(table), callback)

    def find(self, model: "Model", constraints: Mapping[str, Any], callback: Callback) -> None:
        table = self._resolve(model, callback)
        if table is None:
            return
        stmt = sa.select(table)
        for key, expected in constraints.items():
            if key == "id":
                column = table.c.id
            else:
                spec = model.fields.get(key)
                if spec is None or spec.custom:
                    callback(ValidationError(key, "unknown field in constraints"), None)
                    return
                column = table.c[spec.column_name(key)]
            stmt = stmt.where(column == expected)
        self._select(model, stmt, callback)

    def create_request(self, request: Any) -> "SqlConnector":
        return SqlConnector(
            self._db,
            schema=self._schema,
            metadata=self._metadata,
            request=request,
            login=request_login(request),
        )
