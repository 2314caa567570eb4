"""
PostgreSQL access for ordered collections.

A collection is the set of rows in one table (optionally narrowed to one
partition, e.g. all items of one playlist) whose text column holds their
position. ``PositionStore`` reads the boundaries the engine needs and writes
the positions it produces. Position columns must sort with COLLATE "C".
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

import psycopg2
from psycopg2 import sql
from dotenv import load_dotenv

from position import Position

load_dotenv()

logger = logging.getLogger(__name__)


def get_db_connection():
    conn = psycopg2.connect(
        host=os.environ.get("PGHOST"),
        database=os.environ.get("PGDATABASE"),
        user=os.environ.get("PGUSER"),
        password=os.environ.get("PGPASSWORD"),
        port=int(os.environ.get("PGPORT", 5432)),
    )
    return conn


@dataclass(frozen=True)
class CollectionRef:
    """
    Identifies one ordered collection.

    Args:
        table: Table name, optionally schema-qualified ('schema.table')
        position_column: Text column holding each row's position
        id_column: Column that identifies a row
        partition_column: Optional column narrowing the table to one collection
        partition_value: Value of partition_column for this collection
    """

    table: str
    position_column: str
    id_column: str
    partition_column: Optional[str] = None
    partition_value: Any = None

    def __post_init__(self):
        for field_name in ("table", "position_column", "id_column"):
            if not getattr(self, field_name):
                raise ValueError(f"{field_name} is required")
        if self.partition_column is not None and self.partition_value is None:
            raise ValueError("partition_value is required when partition_column is set")

    def table_identifier(self) -> sql.Composable:
        if "." in self.table:
            schema, table = self.table.split(".", 1)
            return sql.Identifier(schema, table)
        return sql.Identifier(self.table)

    def where_clause(self) -> Tuple[sql.Composable, tuple]:
        """Partition filter (or an empty clause) and its parameters."""
        if self.partition_column is None:
            return sql.SQL(""), ()
        return (
            sql.SQL(" WHERE {} = %s").format(sql.Identifier(self.partition_column)),
            (self.partition_value,),
        )

    def describe(self) -> str:
        name = f"{self.table}.{self.position_column}"
        if self.partition_column is not None:
            name += f" [{self.partition_column}={self.partition_value}]"
        return name


def _to_position(value: Optional[str]) -> Optional[Position]:
    # Malformed stored text surfaces as InvalidSymbol/EmptyInput
    if value is None:
        return None
    return Position.parse(value)


class PositionStore:
    """
    Store adapter backed by PostgreSQL.

    Every method opens its own connection from ``connection_factory`` and
    closes it before returning.
    """

    def __init__(self, connection_factory: Callable = get_db_connection):
        self.connection_factory = connection_factory

    def _fetch(self, query: sql.Composable, params: tuple, many: bool = False):
        conn = self.connection_factory()
        cur = conn.cursor()
        try:
            cur.execute(query, params)
            return cur.fetchall() if many else cur.fetchone()
        finally:
            cur.close()
            conn.close()

    def fetch_boundary(self, ref: CollectionRef, which: str = "max") -> Optional[Position]:
        """
        Current smallest or largest position of a collection.

        Returns:
            Position, or None if the collection is empty
        """
        if which not in ("min", "max"):
            raise ValueError(f"which must be 'min' or 'max', got '{which}'")
        where, params = ref.where_clause()
        query = sql.SQL('SELECT {agg}({column} COLLATE "C") FROM {table}{where}').format(
            agg=sql.SQL(which.upper()),
            column=sql.Identifier(ref.position_column),
            table=ref.table_identifier(),
            where=where,
        )
        row = self._fetch(query, params)
        return _to_position(row[0] if row else None)

    def fetch_position(self, ref: CollectionRef, item_id) -> Optional[Position]:
        """Position of one row, or None if the row is not in the collection."""
        where, params = ref.where_clause()
        condition = sql.SQL(" AND " if params else " WHERE ")
        query = sql.SQL("SELECT {column} FROM {table}{where}{cond}{id_column} = %s").format(
            column=sql.Identifier(ref.position_column),
            table=ref.table_identifier(),
            where=where,
            cond=condition,
            id_column=sql.Identifier(ref.id_column),
        )
        row = self._fetch(query, params + (item_id,))
        return _to_position(row[0] if row else None)

    def fetch_neighbour(
        self, ref: CollectionRef, position: Position, direction: str = "next"
    ) -> Optional[Position]:
        """
        Closest position strictly after ('next') or before ('previous') a position.
        """
        if direction == "next":
            operator, order = sql.SQL(">"), sql.SQL("ASC")
        elif direction == "previous":
            operator, order = sql.SQL("<"), sql.SQL("DESC")
        else:
            raise ValueError(f"direction must be 'next' or 'previous', got '{direction}'")

        where, params = ref.where_clause()
        condition = sql.SQL(" AND " if params else " WHERE ")
        column = sql.Identifier(ref.position_column)
        query = sql.SQL(
            'SELECT {column} FROM {table}{where}{cond}{column} COLLATE "C" {op} %s '
            'ORDER BY {column} COLLATE "C" {order} LIMIT 1'
        ).format(
            column=column,
            table=ref.table_identifier(),
            where=where,
            cond=condition,
            op=operator,
            order=order,
        )
        row = self._fetch(query, params + (str(position),))
        return _to_position(row[0] if row else None)

    def _ordered_query(self, ref: CollectionRef, lock: bool = False):
        where, params = ref.where_clause()
        column = sql.Identifier(ref.position_column)
        id_column = sql.Identifier(ref.id_column)
        query = sql.SQL(
            'SELECT {id_column}, {column} FROM {table}{where} '
            'ORDER BY {column} COLLATE "C", {id_column}{lock}'
        ).format(
            id_column=id_column,
            column=column,
            table=ref.table_identifier(),
            where=where,
            lock=sql.SQL(" FOR UPDATE" if lock else ""),
        )
        return query, params

    def fetch_ordered(self, ref: CollectionRef) -> List[Tuple[Any, Position]]:
        """All (id, position) pairs of a collection, ordered by position."""
        query, params = self._ordered_query(ref)
        rows = self._fetch(query, params, many=True)
        return [(item_id, Position.parse(text)) for item_id, text in rows]

    def update_position(self, ref: CollectionRef, item_id, position: Position) -> bool:
        """
        Write a new position for one row.

        Returns:
            bool: True if a row was updated
        """
        return self.apply_positions(ref, [(item_id, position)]) == 1

    def rebalance_locked(
        self,
        ref: CollectionRef,
        planner: Callable[[List[Tuple[Any, Position]]], List[Tuple[Any, Position]]],
    ):
        """
        Read, plan and rewrite a whole collection in one transaction.

        The rows are selected FOR UPDATE on the same connection that writes
        the new positions, so a concurrent move of any of them waits for the
        commit instead of being overwritten.

        Args:
            planner: Maps the ordered (id, position) pairs to their new pairs

        Returns:
            tuple: (current pairs, planned pairs, rows updated)

        Raises:
            psycopg2.Error: On any database failure, after rolling back
            PositionError: If stored text is malformed, after rolling back
        """
        query, params = self._ordered_query(ref, lock=True)

        conn = self.connection_factory()
        cur = conn.cursor()
        try:
            cur.execute(query, params)
            current = [(item_id, Position.parse(text)) for item_id, text in cur.fetchall()]
            planned = planner(current)
            updated = self._write_positions(cur, ref, planned)
            conn.commit()
        except (psycopg2.Error, ValueError) as e:
            conn.rollback()
            logger.error(f"Failed to rebalance {ref.describe()}: {e}")
            raise
        finally:
            cur.close()
            conn.close()

        logger.info(f"Rebalanced {updated} of {len(current)} rows in {ref.describe()}")
        return current, planned, updated

    def apply_positions(self, ref: CollectionRef, entries: List[Tuple[Any, Position]]) -> int:
        """
        Write positions for several rows in a single transaction.

        Returns:
            int: Number of rows updated

        Raises:
            psycopg2.Error: On any database failure, after rolling back
        """
        if not entries:
            return 0

        conn = self.connection_factory()
        cur = conn.cursor()
        try:
            updated = self._write_positions(cur, ref, entries)
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Failed to write positions for {ref.describe()}: {e}")
            raise
        finally:
            cur.close()
            conn.close()

        logger.info(f"Wrote {updated} positions for {ref.describe()}")
        return updated

    def _write_positions(self, cur, ref: CollectionRef, entries) -> int:
        where, params = ref.where_clause()
        condition = sql.SQL(" AND " if params else " WHERE ")
        query = sql.SQL("UPDATE {table} SET {column} = %s{where}{cond}{id_column} = %s").format(
            table=ref.table_identifier(),
            column=sql.Identifier(ref.position_column),
            where=where,
            cond=condition,
            id_column=sql.Identifier(ref.id_column),
        )
        updated = 0
        for item_id, position in entries:
            cur.execute(query, (str(position),) + params + (item_id,))
            updated += cur.rowcount
        return updated
