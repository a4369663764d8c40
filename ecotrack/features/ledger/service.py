from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional, Union
from uuid import uuid4

from sqlalchemy import delete, func, insert, select
from sqlalchemy.orm import Session

from ecotrack.core.database import get_db_session, ledger_entries, owner_transaction
from ecotrack.core.datetime_utils import ensure_utc, local_day, resolve_zone, utc_now
from ecotrack.core.errors import (
    InvalidQuantityError,
    NotFoundError,
    UnknownActivityError,
    ValidationError,
)
from ecotrack.core.logging import log_event
from ecotrack.features.badges.service import BadgeService, badge_service
from ecotrack.features.catalog.service import Catalog, get_catalog
from ecotrack.features.ledger.profile import apply_entry, load_profile, reverse_entry
from ecotrack.models.ledger import LedgerEntry, LedgerFilter

QUANTUM = Decimal("0.000001")
# Numeric(18, 6) columns hold at most 12 integer digits.
MAX_QUANTITY = Decimal("1000000000")
MAX_IMPACT = Decimal("1000000000000")
NOTE_MAX_LENGTH = 500

Number = Union[int, float, str, Decimal]


def parse_quantity(quantity: Number) -> Decimal:
    """Positive, finite decimal quantity no larger than MAX_QUANTITY, or InvalidQuantityError."""
    if isinstance(quantity, bool):
        raise InvalidQuantityError("Quantity must be a number")
    if isinstance(quantity, float) and not math.isfinite(quantity):
        raise InvalidQuantityError("Quantity must be finite")
    try:
        value = Decimal(str(quantity))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidQuantityError(f"Quantity {quantity!r} is not a number")
    if not value.is_finite():
        raise InvalidQuantityError("Quantity must be finite")
    if value > MAX_QUANTITY:
        raise InvalidQuantityError(f"Quantity must be at most {MAX_QUANTITY}")
    try:
        value = value.quantize(QUANTUM)
    except InvalidOperation:
        raise InvalidQuantityError(f"Quantity {quantity!r} is out of range")
    if value <= 0:
        raise InvalidQuantityError("Quantity must be greater than zero")
    return value


def carbon_impact(quantity: Decimal, carbon_per_unit: Decimal) -> Decimal:
    """Impact of ``quantity`` units, rejected when it would overflow the ledger columns."""
    try:
        impact = (quantity * carbon_per_unit).quantize(QUANTUM)
    except InvalidOperation:
        raise InvalidQuantityError("Quantity is too large for this activity")
    if abs(impact) >= MAX_IMPACT:
        raise InvalidQuantityError("Quantity is too large for this activity")
    return impact


def row_to_entry(row) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,
        owner_id=row.owner_id,
        activity_id=row.activity_id,
        category_id=row.category_id,
        quantity=Decimal(row.quantity),
        carbon_impact=Decimal(row.carbon_impact),
        occurred_at=ensure_utc(row.occurred_at),
        created_at=ensure_utc(row.created_at),
        note=row.note,
    )


def select_window(session: Session, owner_id: str, start: datetime, end: datetime) -> List[LedgerEntry]:
    """Entries with ``start <= occurred_at < end``, oldest first."""
    rows = session.execute(
        select(ledger_entries)
        .where(ledger_entries.c.owner_id == owner_id)
        .where(ledger_entries.c.occurred_at >= ensure_utc(start))
        .where(ledger_entries.c.occurred_at < ensure_utc(end))
        .order_by(ledger_entries.c.occurred_at, ledger_entries.c.id)
    ).all()
    return [row_to_entry(row) for row in rows]


class LedgerService:
    """Append-mostly activity log; every write updates the owner's profile atomically."""

    def __init__(
        self,
        catalog_provider: Callable[[], Catalog] = get_catalog,
        badges: BadgeService = badge_service,
    ):
        self._catalog = catalog_provider
        self._badges = badges

    def record_entry(
        self,
        *,
        owner_id: str,
        activity_id: str,
        quantity: Number,
        timestamp: Optional[datetime] = None,
        note: Optional[str] = None,
    ) -> LedgerEntry:
        """Persist one activity with its impact frozen at today's catalog factor."""
        amount = parse_quantity(quantity)
        try:
            activity = self._catalog().get_activity(activity_id)
        except NotFoundError:
            raise UnknownActivityError(f"Activity {activity_id} is not in the catalog")
        if note is not None and len(note) > NOTE_MAX_LENGTH:
            raise ValidationError(f"Note must be at most {NOTE_MAX_LENGTH} characters")

        now = utc_now()
        entry = LedgerEntry(
            id=uuid4().hex,
            owner_id=owner_id,
            activity_id=activity.id,
            category_id=activity.category_id,
            quantity=amount,
            carbon_impact=carbon_impact(amount, activity.carbon_per_unit),
            occurred_at=ensure_utc(timestamp) if timestamp else now,
            created_at=now,
            note=note,
        )

        with owner_transaction(owner_id) as session:
            profile = load_profile(session, owner_id)
            session.execute(
                insert(ledger_entries).values(
                    id=entry.id,
                    owner_id=entry.owner_id,
                    activity_id=entry.activity_id,
                    category_id=entry.category_id,
                    quantity=entry.quantity,
                    carbon_impact=entry.carbon_impact,
                    occurred_at=entry.occurred_at,
                    note=entry.note,
                    created_at=entry.created_at,
                )
            )
            day = local_day(entry.occurred_at, resolve_zone(profile.time_zone))
            apply_entry(session, profile, entry.carbon_impact, day)
            self._badges.evaluate_in_session(session, owner_id, now=now)

        log_event(
            "info",
            "ledger.entry_recorded",
            owner_id=owner_id,
            event_type="ledger.entry_recorded",
            extra={"entry_id": entry.id, "activity_id": entry.activity_id, "carbon_impact": entry.carbon_impact},
        )
        return entry

    def delete_entry(self, *, owner_id: str, entry_id: str) -> None:
        """Hard-delete an owned entry and reverse its contribution to the profile totals."""
        with owner_transaction(owner_id) as session:
            row = session.execute(
                select(ledger_entries)
                .where(ledger_entries.c.id == entry_id)
                .where(ledger_entries.c.owner_id == owner_id)
            ).first()
            if row is None:
                raise NotFoundError(f"Entry {entry_id} not found")
            entry = row_to_entry(row)
            profile = load_profile(session, owner_id)
            session.execute(delete(ledger_entries).where(ledger_entries.c.id == entry_id))
            reverse_entry(session, profile, entry.carbon_impact)

        log_event(
            "info",
            "ledger.entry_deleted",
            owner_id=owner_id,
            event_type="ledger.entry_deleted",
            extra={"entry_id": entry_id, "carbon_impact": entry.carbon_impact},
        )

    def list_entries(self, owner_id: str, filters: Optional[LedgerFilter] = None) -> List[LedgerEntry]:
        """Entries matching ``filters``, newest first."""
        filters = filters or LedgerFilter()
        query = self._filtered(select(ledger_entries), owner_id, filters).order_by(
            ledger_entries.c.occurred_at.desc(), ledger_entries.c.id.desc()
        )
        if filters.offset:
            query = query.offset(filters.offset)
        if filters.limit is not None:
            query = query.limit(filters.limit)
        with get_db_session() as session:
            rows = session.execute(query).all()
        return [row_to_entry(row) for row in rows]

    def count_entries(self, owner_id: str, filters: Optional[LedgerFilter] = None) -> int:
        query = self._filtered(
            select(func.count()).select_from(ledger_entries), owner_id, filters or LedgerFilter()
        )
        with get_db_session() as session:
            return session.execute(query).scalar_one()

    def entries_in_window(self, owner_id: str, start: datetime, end: datetime) -> List[LedgerEntry]:
        with get_db_session() as session:
            return select_window(session, owner_id, start, end)

    @staticmethod
    def _filtered(query, owner_id: str, filters: LedgerFilter):
        if filters.start and filters.end and ensure_utc(filters.start) > ensure_utc(filters.end):
            raise ValidationError("start must not be after end")
        if filters.limit is not None and filters.limit < 1:
            raise ValidationError("limit must be at least 1")
        if filters.offset < 0:
            raise ValidationError("offset must not be negative")

        query = query.where(ledger_entries.c.owner_id == owner_id)
        if filters.start:
            query = query.where(ledger_entries.c.occurred_at >= ensure_utc(filters.start))
        if filters.end:
            query = query.where(ledger_entries.c.occurred_at <= ensure_utc(filters.end))
        if filters.category_id:
            query = query.where(ledger_entries.c.category_id == filters.category_id)
        if filters.activity_id:
            query = query.where(ledger_entries.c.activity_id == filters.activity_id)
        return query


# Singleton service used by routes
ledger_service = LedgerService()
