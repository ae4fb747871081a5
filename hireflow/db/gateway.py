from __future__ import annotations

from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Iterable

from sqlalchemy import Select, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hireflow.core.outcomes import PreconditionFailed
from hireflow.core.workflow import TransitionTable


def _raw(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit when the block exits cleanly, roll back on any exception and re-raise it."""
    try:
        yield session
    except BaseException:
        await session.rollback()
        raise
    await session.commit()


async def lock_first(session: AsyncSession, stmt: Select):
    """SELECT ... FOR UPDATE, returning the first row (or None) with fresh attribute values."""
    result = await session.execute(stmt.with_for_update().execution_options(populate_existing=True))
    return result.first()


async def lock_one(session: AsyncSession, stmt: Select):
    row = await lock_first(session, stmt)
    return row[0] if row is not None else None


async def guarded_update(
    session: AsyncSession,
    model,
    entity_id: int,
    expected_states: Iterable[Any],
    values: dict[str, Any],
    *,
    column: str = "status",
    where: Iterable[Any] = (),
) -> int:
    """UPDATE model SET values WHERE id = entity_id AND <column> IN expected_states; returns affected rows."""
    expected = [_raw(state) for state in expected_states]
    if not expected:
        return 0
    state_column = getattr(model, column)
    stmt = (
        update(model)
        .where(model.id == entity_id, state_column.in_(expected), *where)
        .values({key: _raw(value) for key, value in values.items()})
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return int(result.rowcount or 0)


async def try_transition(
    session: AsyncSession,
    model,
    entity_id: int,
    expected_states: Iterable[Any],
    new_state: Any,
    *,
    column: str = "status",
    where: Iterable[Any] = (),
    values: dict[str, Any] | None = None,
) -> int:
    """The guarded transition primitive shared by every entity.

    Zero affected rows means the precondition was not met, not that the database failed.
    """
    payload = dict(values or {})
    payload[column] = new_state
    return await guarded_update(session, model, entity_id, expected_states, payload, column=column, where=where)


async def fire_transition(
    session: AsyncSession,
    *,
    table: TransitionTable,
    model,
    entity_id: int,
    event: Enum,
    where: Iterable[Any] = (),
    values: dict[str, Any] | None = None,
    column: str = "status",
    missing: str = "Not found",
) -> tuple[Enum, Enum]:
    """Check the transition table against the stored state, then apply the guarded update.

    Absence, scope mismatch, an illegal (state, event) pair and a lost race all raise
    PreconditionFailed with the same message.
    """
    where = tuple(where)
    state_column = getattr(model, column)
    current_raw = (
        await session.execute(select(state_column).where(model.id == entity_id, *where))
    ).scalar_one_or_none()
    if current_raw is None:
        raise PreconditionFailed(missing)
    current = table.coerce(current_raw)
    target = table.target(current, event)
    if target is None:
        raise PreconditionFailed(missing)
    changed = await try_transition(
        session,
        model,
        entity_id,
        table.sources(event),
        target,
        column=column,
        where=where,
        values=values,
    )
    if changed != 1:
        raise PreconditionFailed(missing)
    return current, target
