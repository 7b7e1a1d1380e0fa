#!/usr/bin/env python3
"""
Entity store adapters.

Load/save are atomic per entity; there is no cross-entity transaction.
Loaded entities are always fresh copies, so a handler never sees another
handler's unsaved mutations.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Tuple, Type, TypeVar

import psycopg2
from psycopg2.extras import RealDictCursor

from .exceptions import EntityNotFoundError
from .models import Entity, Lookup

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


class EntityStore(ABC):
    """Load/save primitives plus the indexing cursor"""

    @abstractmethod
    def load(self, model: Type[E], entity_id: str) -> Optional[E]:
        """Return a fresh copy of the entity, or None"""

    @abstractmethod
    def save(self, entity: Entity) -> None:
        """Insert or overwrite the entity"""

    @abstractmethod
    def get_last_indexed_block(self, chain_id: int, contract_address: str) -> Optional[int]:
        """Last fully projected block for a contract, or None if never indexed"""

    @abstractmethod
    def set_last_indexed_block(self, chain_id: int, contract_address: str, block_number: int) -> None:
        """Persist the indexing cursor"""

    def get_or_create(self, model: Type[E], entity_id: str, **defaults) -> Lookup:
        """Load the entity or build an unsaved new one from ``defaults``"""
        entity = self.load(model, entity_id)
        if entity is not None:
            return Lookup(entity, False)
        return Lookup(model(id=entity_id, **defaults), True)

    def require(self, model: Type[E], entity_id: str) -> E:
        """Load an entity that must already exist"""
        entity = self.load(model, entity_id)
        if entity is None:
            raise EntityNotFoundError(model.__name__, entity_id)
        return entity


class MemoryStore(EntityStore):
    """In-process store, used for replays and tests"""

    def __init__(self):
        self._rows: Dict[Tuple[str, str], Entity] = {}
        self._cursors: Dict[Tuple[int, str], int] = {}

    def load(self, model: Type[E], entity_id: str) -> Optional[E]:
        row = self._rows.get((model.table, entity_id))
        return row.model_copy(deep=True) if row is not None else None

    def save(self, entity: Entity) -> None:
        self._rows[(entity.table, entity.id)] = entity.model_copy(deep=True)

    def count(self, model: Type[Entity]) -> int:
        return sum(1 for table, _ in self._rows if table == model.table)

    def get_last_indexed_block(self, chain_id: int, contract_address: str) -> Optional[int]:
        return self._cursors.get((chain_id, contract_address.lower()))

    def set_last_indexed_block(self, chain_id: int, contract_address: str, block_number: int) -> None:
        self._cursors[(chain_id, contract_address.lower())] = block_number


class PostgresStore(EntityStore):
    """psycopg2-backed store, one table per entity model"""

    def __init__(self, database_url: str, connection=None):
        self.database_url = database_url
        self.db_conn = connection
        if self.db_conn is None:
            self._init_database()

    def _init_database(self) -> None:
        """Initialize database connection"""
        try:
            self.db_conn = psycopg2.connect(self.database_url, cursor_factory=RealDictCursor)
            self.db_conn.autocommit = True
            logger.info("Database connection established")

            with self.db_conn.cursor() as cursor:
                cursor.execute("SELECT 1")
        except psycopg2.Error as e:
            logger.error(f"Failed to connect to database: {e}")
            raise

    def ensure_schema(self, schema_path: Path = SCHEMA_PATH) -> None:
        """Create entity and cursor tables if they do not exist"""
        with open(schema_path, "r") as f:
            sql = f.read()
        with self.db_conn.cursor() as cursor:
            cursor.execute(sql)
        logger.info(f"✅ Schema applied from {schema_path.name}")

    def load(self, model: Type[E], entity_id: str) -> Optional[E]:
        with self.db_conn.cursor() as cursor:
            cursor.execute(f"SELECT * FROM {model.table} WHERE id = %s", (entity_id,))
            row = cursor.fetchone()
        if row is None:
            return None
        return model.model_validate(dict(row))

    def save(self, entity: Entity) -> None:
        # json mode renders enums as their values; ints stay ints for NUMERIC columns
        data = entity.model_dump(mode="json")
        columns = list(data)
        updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in columns if c != "id")
        with self.db_conn.cursor() as cursor:
            cursor.execute(
                f"INSERT INTO {entity.table} ({', '.join(columns)}) "
                f"VALUES ({', '.join(['%s'] * len(columns))}) "
                f"ON CONFLICT (id) DO UPDATE SET {updates}",
                [data[c] for c in columns],
            )

    def get_last_indexed_block(self, chain_id: int, contract_address: str) -> Optional[int]:
        with self.db_conn.cursor() as cursor:
            cursor.execute(
                "SELECT last_indexed_block FROM indexer_state WHERE chain_id = %s AND LOWER(contract_address) = LOWER(%s)",
                (chain_id, contract_address),
            )
            row = cursor.fetchone()
        return row["last_indexed_block"] if row else None

    def set_last_indexed_block(self, chain_id: int, contract_address: str, block_number: int) -> None:
        with self.db_conn.cursor() as cursor:
            cursor.execute("""
                INSERT INTO indexer_state (chain_id, contract_address, last_indexed_block, updated_at)
                VALUES (%s, %s, %s, NOW())
                ON CONFLICT (chain_id, contract_address) DO UPDATE SET
                    last_indexed_block = EXCLUDED.last_indexed_block,
                    updated_at = NOW()
            """, (chain_id, contract_address.lower(), block_number))

    def close(self) -> None:
        if self.db_conn is not None:
            self.db_conn.close()
