"""
Database connection management
Async PostgreSQL operations using asyncpg

Runs the configured searches and maps result records to Rows, using the
column types the server reports for the prepared statement.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional, Sequence

import asyncpg

from .config import DatabaseConfig
from .errors import CoercionError, ExecutionError
from .utils.error_messages import TIMEOUT_MESSAGE, enhance_error_message
from .values import NULL, IntegerArray, Json, ParamType, Row, Value

logger = logging.getLogger(__name__)

JSON_TYPES = frozenset({"json", "jsonb"})
INTEGER_ARRAY_TYPES = frozenset({"_int2", "_int4", "_int8"})


async def _init_connection(conn):
    """Decode json/jsonb columns to Python objects and encode parameters back."""
    for typename in JSON_TYPES:
        await conn.set_type_codec(
            typename,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


def column_value(obj: Any, pg_type) -> Value:
    """Convert one decoded column to a Value, guided by its PostgreSQL type."""
    if obj is None:
        return NULL
    if pg_type.name in JSON_TYPES:
        return Json(obj)
    if pg_type.kind == "array":
        items = list(obj)
        if pg_type.name in INTEGER_ARRAY_TYPES and all(item is not None for item in items):
            return IntegerArray(items)
        return Value.from_python(items)
    return Value.from_python(obj)


def row_from_record(record, attributes) -> Row:
    """
    Build a Row from an asyncpg record and the statement's attributes.

    Raises ValueError when the query returns the same column name twice.
    """
    return Row((attr.name, column_value(record[index], attr.type)) for index, attr in enumerate(attributes))


class DatabaseConnection:
    """
    Manages the PostgreSQL connection pool and runs searches
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self):
        """Initialize connection pool"""
        if self.pool is not None:
            logger.warning("Connection pool already initialized")
            return

        try:
            self.pool = await asyncpg.create_pool(
                dsn=self.config.dsn,
                min_size=self.config.min_pool_size,
                max_size=self.config.max_pool_size,
                command_timeout=self.config.command_timeout,
                init=_init_connection,
            )
            logger.info(f"✅ Connected to PostgreSQL at {self.config.safe_dsn}")

        except Exception as e:
            # reported to the user by the caller
            logger.debug(f"Failed to connect to database: {e}")
            raise

    async def disconnect(self):
        """Close connection pool"""
        if self.pool is not None:
            await self.pool.close()
            self.pool = None
            logger.info("Database connection pool closed")

    @asynccontextmanager
    async def acquire(self):
        """
        Acquire a connection from the pool.

        Usage:
            async with db.acquire() as conn:
                result = await conn.fetch("SELECT * FROM users")

        The connection goes back to the pool even if an exception occurs.
        """
        if self.pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")

        async with self.pool.acquire() as connection:
            yield connection

    async def fetchval(self, query: str, *args, timeout: Optional[float] = None) -> Any:
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args, timeout=timeout)

    async def check_connection(self) -> bool:
        """
        Check if database connection is healthy

        Returns:
            True if connection is healthy
        """
        try:
            result = await self.fetchval("SELECT 1")
            return result == 1
        except Exception as e:
            logger.error(f"Connection check failed: {e}")
            return False

    async def execute_search(
        self,
        query: str,
        values: Sequence[Value],
        param_types: Sequence[ParamType],
    ) -> list:
        """
        Run a search query with positional parameters ($1, $2, ...).

        Args:
            query: SQL text from the resources file
            values: coerced parameter values, one per placeholder
            param_types: declared types of the parameters, same order

        Returns:
            List of Rows in the order the server returned them

        Raises:
            ExecutionError: the query failed for any reason
        """
        try:
            args = [param_type.to_driver(value) for param_type, value in zip(param_types, values)]
        except (CoercionError, ValueError) as e:
            raise ExecutionError(f"cannot bind parameters: {e}") from e

        try:
            async with self.acquire() as conn:
                statement = await conn.prepare(query)
                attributes = statement.get_attributes()
                records = await statement.fetch(*args)
        except asyncio.TimeoutError as e:
            logger.error(f"❌ Query timed out after {self.config.command_timeout}s")
            raise ExecutionError(TIMEOUT_MESSAGE) from e
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(f"❌ Query failed: {e}")
            raise ExecutionError(enhance_error_message(e)) from e

        try:
            rows = [row_from_record(record, attributes) for record in records]
        except ValueError as e:
            raise ExecutionError(f"query returned an invalid row: {e}") from e

        logger.debug(f"Query returned {len(rows)} rows")
        return rows
