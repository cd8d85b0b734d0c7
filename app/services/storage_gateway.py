"""
Venue Gallery Backend — Storage Gateway
========================================

What:  The only component that issues SQL. Wraps one AsyncSession and offers
       the small set of operations the services need: unique-checked insert,
       point lookup, filtered find/count, atomic increment, bulk delete and
       count/sum/avg aggregation.
How:   Builds SQLAlchemy 2.0 statements; translates IntegrityError into
       ConflictError and any other SQLAlchemyError into DatabaseError.
Who:   Constructed per request by app/dependencies.py and handed to the
       Category and Image services.

Transactions:
    The gateway never commits. Writes are flushed so that generated values
    and constraint violations surface immediately; the request-scoped
    session dependency commits or rolls back the whole unit of work.
    An AsyncSession must not be used concurrently, so callers await each
    gateway call before issuing the next one.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import Base
from app.exceptions import ConflictError, DatabaseError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


class StorageGateway:
    """
    Thin async data-access layer over a request-scoped session.

    Every public method either returns plain ORM objects / scalars or raises
    one of ConflictError, DatabaseError.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @contextmanager
    def _guard(self, operation: str, **context: Any) -> Iterator[None]:
        try:
            yield
        except IntegrityError as e:
            logger.info("Unique/foreign key violation during %s: %s", operation, e.orig)
            raise ConflictError(
                message="A record with the same unique value already exists",
                context={"operation": operation, **context},
            ) from e
        except SQLAlchemyError as e:
            logger.error("Database error during %s: %s", operation, str(e), exc_info=True)
            raise DatabaseError(
                context={"operation": operation, "error_type": type(e).__name__, **context},
            ) from e

    # ── Writes ────────────────────────────────────────────────────────────

    async def insert(self, obj: ModelT) -> ModelT:
        """Add a new row and flush it; unique violations raise ConflictError."""
        with self._guard("insert", table=obj.__tablename__):
            self.session.add(obj)
            await self.session.flush()
        return obj

    async def flush(self) -> None:
        """Persist pending attribute changes on loaded objects."""
        with self._guard("flush"):
            await self.session.flush()

    async def increment(
        self,
        model: Type[ModelT],
        obj_id: str,
        column: str,
        amount: int = 1,
        floor: Optional[int] = None,
    ) -> int:
        """
        Atomically add ``amount`` to a numeric column of one row.

        Issued as a single ``UPDATE ... SET col = col + :amount`` so concurrent
        requests never lose increments. With ``floor`` set, the row is only
        updated while the result stays >= floor.

        Returns the number of rows changed (0 when the id is unknown or the
        floor guard blocked the update).
        """
        col = getattr(model, column)
        stmt = (
            update(model)
            .where(model.id == obj_id)
            .values({column: col + amount})
            .execution_options(synchronize_session=False)
        )
        if floor is not None:
            stmt = stmt.where(col + amount >= floor)
        with self._guard("increment", table=model.__tablename__, column=column):
            result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def update_fields(self, model: Type[ModelT], obj_id: str, **values: Any) -> int:
        stmt = (
            update(model)
            .where(model.id == obj_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with self._guard("update", table=model.__tablename__):
            result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def delete(self, obj: Base) -> None:
        """Delete one loaded row."""
        with self._guard("delete", table=obj.__tablename__):
            await self.session.delete(obj)
            await self.session.flush()

    async def delete_where(self, model: Type[ModelT], *criteria: Any) -> int:
        """Bulk delete by filter; returns the number of deleted rows."""
        stmt = delete(model).where(*criteria).execution_options(synchronize_session=False)
        with self._guard("bulk delete", table=model.__tablename__):
            result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def refresh(self, obj: Base) -> None:
        """Reload a row's column values from the database."""
        with self._guard("refresh", table=obj.__tablename__):
            await self.session.refresh(obj)

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get(self, model: Type[ModelT], obj_id: str) -> Optional[ModelT]:
        """Primary key lookup; None when absent."""
        with self._guard("get", table=model.__tablename__, id=obj_id):
            result = await self.session.execute(select(model).where(model.id == obj_id))
            return result.scalar_one_or_none()

    async def find(
        self,
        model: Type[ModelT],
        *criteria: Any,
        order_by: Sequence[Any] = (),
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        join: Optional[Any] = None,
    ) -> List[ModelT]:
        """
        Filtered list with optional ordering, offset and limit.

        ``join`` is an (entity, onclause) pair for filters that reach into a
        second table (images filtered by their category's name).
        """
        query = select(model)
        if join is not None:
            query = query.join(*join)
        if criteria:
            query = query.where(*criteria)
        if order_by:
            query = query.order_by(*order_by)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        with self._guard("find", table=model.__tablename__):
            result = await self.session.execute(query)
            return list(result.scalars().all())

    async def find_one(self, model: Type[ModelT], *criteria: Any, order_by: Sequence[Any] = ()) -> Optional[ModelT]:
        rows = await self.find(model, *criteria, order_by=order_by, limit=1)
        return rows[0] if rows else None

    async def count(self, model: Type[ModelT], *criteria: Any) -> int:
        query = select(func.count()).select_from(model)
        if criteria:
            query = query.where(*criteria)
        with self._guard("count", table=model.__tablename__):
            result = await self.session.execute(query)
            return result.scalar() or 0

    async def aggregate(self, model: Type[ModelT], *criteria: Any, **expressions: Any) -> Dict[str, Any]:
        """
        Evaluate named aggregate expressions over a filtered table.

            await gateway.aggregate(
                Image, Image.is_active.is_(True),
                total=func.count(Image.id),
                views=func.sum(Image.view_count),
            )

        SUM/AVG over zero rows yield NULL in SQL; those come back as 0 so
        callers never special-case an empty table.
        """
        labelled = [expr.label(name) for name, expr in expressions.items()]
        query = select(*labelled).select_from(model)
        if criteria:
            query = query.where(*criteria)
        with self._guard("aggregate", table=model.__tablename__):
            result = await self.session.execute(query)
            row = result.one()
        return {name: (row._mapping[name] or 0) for name in expressions}

    # ── Expression helpers ────────────────────────────────────────────────

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    def json_elements(self, column: Any) -> Any:
        """
        One row per element of a JSON array column, as text in ``.c.value``.

        Meant for correlated EXISTS filters:

            tag = gateway.json_elements(Image.tags)
            select(tag.c.value).where(tag.c.value == "garden").exists()

        PostgreSQL expands the array with json_array_elements_text, SQLite
        with json_each. Both decode escaped characters, so matching works
        on the element text rather than on the serialized array.
        """
        if self.dialect_name == "postgresql":
            return func.json_array_elements_text(column).table_valued("value").render_derived()
        return func.json_each(column).table_valued("value")


# ── LIKE helpers ──────────────────────────────────────────────────────────

LIKE_ESCAPE = "\\"


def contains_pattern(term: str) -> str:
    """
    LIKE pattern matching ``term`` anywhere in a column.

    ``%`` and ``_`` in user input are escaped so they match literally; pass
    ``escape=LIKE_ESCAPE`` to the ``ilike`` call that uses the pattern.
    """
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"
