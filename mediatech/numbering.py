# mediatech/numbering.py
"""
Sequential, human-readable numbers (INV-00001, KND-00042, AUS-20261019-0007).

The last issued value per key lives in the `counter` table. The increment is
a single UPDATE inside the caller's transaction, so the row stays locked
until the caller commits and two writers cannot hand out the same number.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from . import config
from .db_models import Counter
from .errors import PersistenceError, ValidationError

logger = logging.getLogger(__name__)


def _increment(session: Session, counter_key: str) -> int:
    result = session.exec(
        update(Counter).where(Counter.key == counter_key).values(value=Counter.value + 1)
    )
    if result.rowcount == 0:
        # first use of this key
        try:
            with session.begin_nested():
                session.add(Counter(key=counter_key, value=1))
            return 1
        except IntegrityError:
            # someone else created it between our UPDATE and INSERT
            session.exec(
                update(Counter).where(Counter.key == counter_key).values(value=Counter.value + 1)
            )
    return session.exec(select(Counter.value).where(Counter.key == counter_key)).one()


def next_value(session: Session, counter_key: str) -> int:
    if not counter_key:
        raise ValidationError("Counter key must not be empty")
    try:
        value = _increment(session, counter_key)
    except SQLAlchemyError as exc:
        logger.error(f"[NUMBERING] Counter '{counter_key}' unavailable: {exc}")
        raise PersistenceError(f"Could not read counter '{counter_key}'") from exc
    logger.debug(f"[NUMBERING] {counter_key} -> {value}")
    return value


def format_number(prefix: str, value: int, on: Optional[date] = None) -> str:
    if on is not None:
        return f"{prefix}-{on.strftime('%Y%m%d')}-{value:04d}"
    return f"{prefix}-{value:05d}"


def next_number(
    session: Session,
    counter_key: str,
    prefix: str,
    dated: bool = False,
    today: Optional[date] = None,
) -> str:
    """
    Increment `counter_key` and format it with `prefix`.

    dated=True embeds the current date: PREFIX-YYYYMMDD-NNNN.
    The new counter value is flushed but not committed.
    """
    if not prefix:
        raise ValidationError("Number prefix must not be empty")
    value = next_value(session, counter_key)
    on = (today or date.today()) if dated else None
    return format_number(prefix, value, on)


def next_inventory_number(session: Session, prefix: str = config.INVENTORY_PREFIX) -> str:
    return next_number(session, config.INVENTORY_COUNTER, prefix)


def next_customer_number(session: Session, prefix: str = config.CUSTOMER_PREFIX) -> str:
    return next_number(session, config.CUSTOMER_COUNTER, prefix)


def next_rental_number(
    session: Session,
    prefix: str = config.RENTAL_PREFIX,
    today: Optional[date] = None,
) -> str:
    return next_number(session, config.RENTAL_COUNTER, prefix, dated=True, today=today)
