"""Immutable, composable descriptions of single SQL statements.

A QueryDescriptor is pure data: chaining returns a new descriptor and the
receiver never changes. ``to_statement()`` turns it into a SQLAlchemy Core
executable; values always travel as bound parameters.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping, Optional, Sequence

from sqlalchemy import LABEL_STYLE_TABLENAME_PLUS_COL, Column, Table, delete, insert, select, update
from sqlalchemy.sql.expression import ColumnElement, Executable


class StatementKind(str, enum.Enum):
    select = "select"
    insert = "insert"
    update = "update"
    delete = "delete"


class JoinKind(str, enum.Enum):
    inner = "inner"
    left_outer = "left_outer"


class SortOrder(str, enum.Enum):
    ascending = "asc"
    descending = "desc"


@dataclass(frozen=True, eq=False)
class JoinClause:
    descriptor: QueryDescriptor
    from_field: str
    to_field: str
    kind: JoinKind = JoinKind.left_outer


@dataclass(frozen=True, eq=False)
class QueryDescriptor:
    kind: StatementKind
    table: Table
    fields: tuple[str, ...] = ()
    values: tuple[tuple[str, Any], ...] = ()
    predicates: tuple[ColumnElement, ...] = ()
    joins: tuple[JoinClause, ...] = ()
    ordering: tuple[tuple[str, SortOrder], ...] = ()

    # -- constructors -----------------------------------------------------

    @classmethod
    def select(cls, table: Table, fields: Optional[Sequence[str]] = None) -> QueryDescriptor:
        names = tuple(fields) if fields else tuple(table.c.keys())
        return cls(kind=StatementKind.select, table=table, fields=names)

    @classmethod
    def insert(cls, table: Table, data: Mapping[str, Any]) -> QueryDescriptor:
        return cls(kind=StatementKind.insert, table=table, values=tuple(data.items()))

    @classmethod
    def update(cls, table: Table, data: Mapping[str, Any]) -> QueryDescriptor:
        return cls(kind=StatementKind.update, table=table, values=tuple(data.items()))

    @classmethod
    def delete(cls, table: Table) -> QueryDescriptor:
        return cls(kind=StatementKind.delete, table=table)

    # -- chaining ---------------------------------------------------------

    def where(self, *clauses: ColumnElement) -> QueryDescriptor:
        return replace(self, predicates=self.predicates + tuple(clauses))

    def where_equals(self, **criteria: Any) -> QueryDescriptor:
        return self.where(*(self.column(name) == value for name, value in criteria.items()))

    def where_in(self, field: str, values: Iterable[Any]) -> QueryDescriptor:
        return self.where(self.column(field).in_(list(values)))

    def join(
        self,
        other: QueryDescriptor,
        from_field: str,
        to_field: str,
        kind: JoinKind = JoinKind.left_outer,
    ) -> QueryDescriptor:
        if self.kind is not StatementKind.select or other.kind is not StatementKind.select:
            raise ValueError("Only select descriptors can be joined")
        clause = JoinClause(descriptor=other, from_field=from_field, to_field=to_field, kind=kind)
        return replace(self, joins=self.joins + (clause,))

    def order_by(self, field: str, order: SortOrder = SortOrder.ascending) -> QueryDescriptor:
        self.column(field)
        return replace(self, ordering=self.ordering + ((field, order),))

    # -- compilation ------------------------------------------------------

    def column(self, name: str) -> Column:
        """Resolve a field name; ``table.field`` reaches into joined tables."""
        table = self.table
        if "." in name:
            table_name, name = name.split(".", 1)
            tables = {self.table.name: self.table}
            tables.update((j.descriptor.table.name, j.descriptor.table) for j in self.joins)
            if table_name not in tables:
                raise ValueError(f"Unknown table '{table_name}' in field reference")
            table = tables[table_name]
        if name not in table.c:
            raise ValueError(f"Unknown field '{name}' for table '{table.name}'")
        return table.c[name]

    def to_statement(self) -> Executable:
        if self.kind is StatementKind.select:
            return self._build_select()

        if self.kind is StatementKind.insert:
            return insert(self.table).values(self._checked_values())

        if not self.predicates:
            raise ValueError(f"Refusing to {self.kind.value} '{self.table.name}' without a predicate")
        if self.kind is StatementKind.update:
            return update(self.table).where(*self.predicates).values(self._checked_values())
        return delete(self.table).where(*self.predicates)

    def _checked_values(self) -> dict[str, Any]:
        for name, _ in self.values:
            self.column(name)
        return dict(self.values)

    def _build_select(self):
        columns = [self.column(name) for name in self.fields]
        source = self.table
        for clause in self.joins:
            other = clause.descriptor
            columns.extend(other.column(name) for name in other.fields)
            on = self.column(clause.from_field) == other.column(clause.to_field)
            source = source.join(other.table, on, isouter=clause.kind is JoinKind.left_outer)

        statement = select(*columns).select_from(source)
        if self.joins:
            statement = statement.set_label_style(LABEL_STYLE_TABLENAME_PLUS_COL)
        if self.predicates:
            statement = statement.where(*self.predicates)
        for name, order in self.ordering:
            column = self.column(name)
            statement = statement.order_by(column.desc() if order is SortOrder.descending else column.asc())
        return statement
