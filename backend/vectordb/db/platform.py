"""
Client for the managed database platform.

All reads and writes go through a PlatformClient instance that the
application creates in its lifespan and hands to request handlers as a
dependency. Stored procedures are called with named arguments; plain table
access uses SQLModel statements with an explicit organization filter.
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Mapping, Optional, Sequence, Type, TypeVar
from uuid import UUID
import json
import logging
import re

from fastapi import Request
from sqlalchemy import delete, func, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from vectordb.core.config import settings

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")


class PlatformError(Exception):
    """A remote call to the database platform failed."""

    def __init__(self, operation: str, original: Optional[BaseException] = None):
        self.operation = operation
        self.original = original
        message = f"Platform call '{operation}' failed"
        if original is not None:
            message = f"{message}: {original}"
        super().__init__(message)


def create_platform_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create the async engine used by PlatformClient."""
    return create_async_engine(
        database_url or settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
    )


def build_rpc_statement(function: str, params: Mapping[str, Any], set_returning: bool = True) -> str:
    """
    Build the SQL text that calls a stored procedure with named arguments.

    Args:
        function: Procedure name, a plain lowercase identifier
        params: Argument names; values are bound separately
        set_returning: Select every row (True) or a single value (False)

    Raises:
        ValueError: If the function or an argument name is not a plain identifier.
    """
    if not _IDENTIFIER.match(function):
        raise ValueError(f"Invalid procedure name: {function}")

    arguments = []
    for name, value in params.items():
        if not _IDENTIFIER.match(name):
            raise ValueError(f"Invalid argument name: {name}")
        placeholder = f":{name}"
        if _is_json_value(value):
            placeholder = f"CAST(:{name} AS jsonb)"
        arguments.append(f"{name} => {placeholder}")

    call = f"{function}({', '.join(arguments)})"
    if set_returning:
        return f"SELECT * FROM {call}"
    return f"SELECT {call} AS result"


def encode_rpc_params(params: Mapping[str, Any]) -> Dict[str, Any]:
    """JSON-encode dict and list-of-dict arguments; asyncpg expects text for jsonb."""
    return {
        name: json.dumps(value, default=_json_default) if _is_json_value(value) else value
        for name, value in params.items()
    }


def _is_json_value(value: Any) -> bool:
    if isinstance(value, dict):
        return True
    return isinstance(value, list) and any(isinstance(item, dict) for item in value)


def _json_default(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class PlatformClient:
    """
    Thin async client over the platform's PostgreSQL endpoint.

    Each call runs in its own transaction; errors from the driver are
    re-raised as PlatformError.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._sessions = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Transactional session: commits on success, rolls back on error.
        """
        async with self._sessions() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def rpc(self, function: str, params: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """
        Call a set-returning stored procedure.

        Returns:
            Rows as dicts, in the order the procedure produced them.
        """
        statement = text(build_rpc_statement(function, params))
        try:
            async with self.session() as session:
                result = await session.execute(statement, encode_rpc_params(params))
                return [dict(row._mapping) for row in result]
        except SQLAlchemyError as e:
            raise PlatformError(function, e) from e

    async def rpc_scalar(self, function: str, params: Mapping[str, Any]) -> Any:
        """Call a stored procedure that returns a single value."""
        statement = text(build_rpc_statement(function, params, set_returning=False))
        try:
            async with self.session() as session:
                result = await session.execute(statement, encode_rpc_params(params))
                return result.scalar()
        except SQLAlchemyError as e:
            raise PlatformError(function, e) from e

    async def fetch_all(
        self,
        model: Type[ModelT],
        filters: Mapping[str, Any],
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[ModelT]:
        """
        Select rows matching every filter.

        A list or tuple filter value matches any of its elements.
        """
        query = select(model).where(*self._conditions(model, filters))
        if order_by:
            column = getattr(model, order_by)
            query = query.order_by(column.desc() if descending else column.asc())
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        try:
            async with self.session() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise PlatformError(f"select {model.__tablename__}", e) from e

    async def fetch_one(self, model: Type[ModelT], filters: Mapping[str, Any]) -> Optional[ModelT]:
        """Select the single row matching every filter, or None."""
        rows = await self.fetch_all(model, filters, limit=1)
        return rows[0] if rows else None

    async def count(self, model: Type[ModelT], filters: Mapping[str, Any]) -> int:
        query = select(func.count()).select_from(model).where(*self._conditions(model, filters))
        try:
            async with self.session() as session:
                result = await session.execute(query)
                return result.scalar() or 0
        except SQLAlchemyError as e:
            raise PlatformError(f"count {model.__tablename__}", e) from e

    async def insert(self, instance: ModelT) -> ModelT:
        """Insert a row and return it with server defaults loaded."""
        try:
            async with self.session() as session:
                session.add(instance)
                await session.flush()
                await session.refresh(instance)
                return instance
        except SQLAlchemyError as e:
            raise PlatformError(f"insert {instance.__tablename__}", e) from e

    async def update(
        self,
        model: Type[ModelT],
        filters: Mapping[str, Any],
        values: Mapping[str, Any],
    ) -> Optional[ModelT]:
        """
        Update the rows matching every filter.

        Returns:
            The first updated row, or None when nothing matched.
        """
        statement = (
            update(model)
            .where(*self._conditions(model, filters))
            .values(**values)
            .returning(model)
        )
        try:
            async with self.session() as session:
                result = await session.execute(statement)
                return result.scalars().first()
        except SQLAlchemyError as e:
            raise PlatformError(f"update {model.__tablename__}", e) from e

    async def delete(self, model: Type[ModelT], filters: Mapping[str, Any]) -> int:
        """Delete the rows matching every filter and return how many were removed."""
        if not filters:
            raise ValueError("Refusing to delete without filters")

        statement = delete(model).where(*self._conditions(model, filters))
        try:
            async with self.session() as session:
                result = await session.execute(statement)
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise PlatformError(f"delete {model.__tablename__}", e) from e

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise PlatformError("ping", e) from e
        return True

    async def close(self) -> None:
        await self.engine.dispose()

    @staticmethod
    def _conditions(model: Type[SQLModel], filters: Mapping[str, Any]) -> Sequence[Any]:
        conditions = []
        for name, value in filters.items():
            column = getattr(model, name)
            if isinstance(value, (list, tuple, set, frozenset)):
                conditions.append(column.in_(list(value)))
            elif value is None:
                conditions.append(column.is_(None))
            else:
                conditions.append(column == value)
        return conditions


def get_platform(request: Request) -> PlatformClient:
    """
    FastAPI dependency returning the platform client created at startup.

    Usage:
        @router.get("/items")
        async def get_items(platform: PlatformClient = Depends(get_platform)):
            ...
    """
    platform = getattr(request.app.state, "platform", None)
    if platform is None:
        raise RuntimeError("Platform client is not configured. Is the application lifespan running?")
    return platform
