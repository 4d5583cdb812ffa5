from __future__ import annotations

import logging
import threading
from contextlib import contextmanager, nullcontext
from dataclasses import replace
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Iterator

from sqlalchemy import (
    DDL,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Engine,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    create_engine,
    delete,
    event,
    select,
    text,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from creatorhq.application.exceptions import InvalidTransition, NotFound, SlotConflict
from creatorhq.application.ports.booking_repository import BookingRepositoryPort
from creatorhq.domain.entities.booking import Booking, BookingStatus, PaymentStatus, ServiceType
from creatorhq.domain.entities.checkout import CheckoutSession, CheckoutStatus
from creatorhq.domain.entities.creator import (
    AvailabilityWindow,
    BlockedDateRange,
    CalendarCredential,
    CreatorProfile,
)

OVERLAP_CONSTRAINT = "bookings_no_overlap_per_creator"


class Base(DeclarativeBase):
    pass


class BookingRow(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    creator_id: Mapped[str] = mapped_column(String(64), index=True)
    client_name: Mapped[str] = mapped_column(String(120))
    client_email: Mapped[str] = mapped_column(String(255), index=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    service_type: Mapped[str] = mapped_column(String(20))
    booking_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    duration_minutes: Mapped[int] = mapped_column(Integer)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    status: Mapped[str] = mapped_column(String(20), default=BookingStatus.pending.value, index=True)
    payment_status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.pending.value)
    payment_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    meeting_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("duration_minutes >= 15", name="bookings_min_duration"),
        CheckConstraint("price >= 0", name="bookings_price_non_negative"),
    )


class CreatorRow(Base):
    __tablename__ = "creator_profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255))
    contact_email: Mapped[str] = mapped_column(String(255))
    timezone: Mapped[str] = mapped_column(String(64), default="UTC")


class AvailabilityRow(Base):
    __tablename__ = "creator_availability"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    creator_id: Mapped[str] = mapped_column(String(64), index=True)
    day_of_week: Mapped[int] = mapped_column(Integer)
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="creator_availability_day_of_week"),
        CheckConstraint("start_time < end_time", name="creator_availability_window_order"),
    )


class BlockedDateRow(Base):
    __tablename__ = "creator_blocked_dates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    creator_id: Mapped[str] = mapped_column(String(64), index=True)
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (CheckConstraint("start_date <= end_date", name="creator_blocked_dates_order"),)


class CalendarTokenRow(Base):
    __tablename__ = "creator_calendar_tokens"

    creator_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    access_token: Mapped[str] = mapped_column(Text)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class CheckoutSessionRow(Base):
    __tablename__ = "checkout_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    provider_session_id: Mapped[str] = mapped_column(String(255), unique=True)
    booking_id: Mapped[str] = mapped_column(String(36), index=True)
    creator_id: Mapped[str] = mapped_column(String(64))
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    currency: Mapped[str] = mapped_column(String(8))
    url: Mapped[str] = mapped_column(String(1024))
    status: Mapped[str] = mapped_column(String(20), default=CheckoutStatus.pending.value)
    payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class RevenueEventRow(Base):
    __tablename__ = "revenue_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    creator_id: Mapped[str] = mapped_column(String(64), index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    source_type: Mapped[str] = mapped_column(String(32))
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


# PostgreSQL enforces "no overlapping active bookings per creator" itself.
event.listen(
    BookingRow.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    BookingRow.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE bookings ADD CONSTRAINT {OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist (creator_id WITH =, tstzrange(booking_date, ends_at, '[)') WITH &&) "
        "WHERE (status <> 'cancelled')"
    ).execute_if(dialect="postgresql"),
)


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True)


def _utc(value: datetime | None) -> datetime | None:
    # SQLite hands timestamps back naive; everything is stored in UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _booking_to_row(booking: Booking, row: BookingRow | None = None) -> BookingRow:
    row = row or BookingRow(id=booking.id)
    row.creator_id = booking.creator_id
    row.client_name = booking.client_name
    row.client_email = booking.client_email
    row.phone = booking.phone
    row.service_type = booking.service_type.value
    row.booking_date = _utc(booking.booking_date)
    row.ends_at = _utc(booking.ends_at)
    row.duration_minutes = booking.duration_minutes
    row.price = booking.price
    row.status = booking.status.value
    row.payment_status = booking.payment_status.value
    row.payment_id = booking.payment_id
    row.payment_link = booking.payment_link
    row.meeting_link = booking.meeting_link
    row.notes = booking.notes
    row.cancellation_reason = booking.cancellation_reason
    row.created_at = _utc(booking.created_at)
    return row


def _row_to_booking(row: BookingRow) -> Booking:
    return Booking(
        id=row.id,
        creator_id=row.creator_id,
        client_name=row.client_name,
        client_email=row.client_email,
        phone=row.phone,
        service_type=ServiceType(row.service_type),
        booking_date=_utc(row.booking_date),
        duration_minutes=row.duration_minutes,
        price=Decimal(row.price).quantize(Decimal("0.01")),
        status=BookingStatus(row.status),
        payment_status=PaymentStatus(row.payment_status),
        payment_id=row.payment_id,
        payment_link=row.payment_link,
        meeting_link=row.meeting_link,
        notes=row.notes,
        cancellation_reason=row.cancellation_reason,
        created_at=_utc(row.created_at),
    )


def _row_to_checkout(row: CheckoutSessionRow) -> CheckoutSession:
    return CheckoutSession(
        id=row.id,
        provider_session_id=row.provider_session_id,
        booking_id=row.booking_id,
        creator_id=row.creator_id,
        amount=Decimal(row.amount).quantize(Decimal("0.01")),
        currency=row.currency,
        url=row.url,
        status=CheckoutStatus(row.status),
        payment_intent_id=row.payment_intent_id,
        created_at=_utc(row.created_at),
    )


class SqlBookingRepository(BookingRepositoryPort):
    """
    SQLAlchemy-backed store.

    Schedule writes run in one transaction that serialises on the creator:
    PostgreSQL takes a transaction-scoped advisory lock (and the exclusion
    constraint backs it up), SQLite falls back to a process lock since it
    has no row locking.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._sessions = sessionmaker(engine, expire_on_commit=False)
        self._is_postgres = engine.dialect.name == "postgresql"
        self._local_lock = threading.Lock() if engine.dialect.name == "sqlite" else None
        self._logger = logging.getLogger(__name__)

    def create_schema(self) -> None:
        Base.metadata.create_all(self._engine)

    @contextmanager
    def _schedule_transaction(self, creator_id: str) -> Iterator[Session]:
        with self._local_lock or nullcontext():
            with self._sessions.begin() as session:
                if self._is_postgres:
                    session.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": creator_id})
                yield session

    def _overlapping(
        self,
        session: Session,
        creator_id: str,
        start: datetime,
        end: datetime,
        exclude_id: str | None,
        lock: bool = False,
    ) -> list[BookingRow]:
        stmt = select(BookingRow).where(
            BookingRow.creator_id == creator_id,
            BookingRow.status != BookingStatus.cancelled.value,
            BookingRow.booking_date < _utc(end),
            BookingRow.ends_at > _utc(start),
        )
        if exclude_id:
            stmt = stmt.where(BookingRow.id != exclude_id)
        if lock:
            stmt = stmt.with_for_update()
        return list(session.scalars(stmt.order_by(BookingRow.booking_date)).all())

    def _raise_if_overlap_violation(self, exc: IntegrityError) -> None:
        if OVERLAP_CONSTRAINT in str(getattr(exc, "orig", exc)):
            raise SlotConflict() from exc

    def create_booking(self, booking: Booking) -> Booking:
        try:
            with self._schedule_transaction(booking.creator_id) as session:
                conflicts = self._overlapping(
                    session, booking.creator_id, booking.booking_date, booking.ends_at, None, lock=True
                )
                if conflicts:
                    raise SlotConflict(conflicting_ids=[r.id for r in conflicts])
                session.add(_booking_to_row(booking))
        except IntegrityError as exc:
            self._raise_if_overlap_violation(exc)
            raise
        return booking

    def get_booking(self, booking_id: str) -> Booking | None:
        with self._sessions() as session:
            row = session.get(BookingRow, booking_id)
            return _row_to_booking(row) if row else None

    def list_bookings(self, creator_id: str, status: BookingStatus | None = None) -> list[Booking]:
        stmt = select(BookingRow).where(BookingRow.creator_id == creator_id)
        if status is not None:
            stmt = stmt.where(BookingRow.status == BookingStatus(status).value)
        with self._sessions() as session:
            return [_row_to_booking(r) for r in session.scalars(stmt.order_by(BookingRow.booking_date))]

    def find_conflicting(
        self,
        creator_id: str,
        start: datetime,
        end: datetime,
        exclude_id: str | None = None,
    ) -> list[Booking]:
        with self._sessions() as session:
            return [_row_to_booking(r) for r in self._overlapping(session, creator_id, start, end, exclude_id)]

    def update_booking(
        self,
        booking_id: str,
        changes: dict[str, Any],
        expected_status: BookingStatus,
        expected_payment_status: PaymentStatus,
        check_slot: bool = False,
    ) -> Booking:
        existing = self.get_booking(booking_id)
        if existing is None:
            raise NotFound(f"Booking {booking_id} not found")

        try:
            with self._schedule_transaction(existing.creator_id) as session:
                row = session.get(BookingRow, booking_id, with_for_update=True)
                if row is None:
                    raise NotFound(f"Booking {booking_id} not found")
                current = _row_to_booking(row)
                if current.status != expected_status or current.payment_status != expected_payment_status:
                    raise InvalidTransition(
                        f"Booking {booking_id} changed concurrently "
                        f"(now {current.status.value}/{current.payment_status.value})."
                    )
                updated = replace(current, **changes)
                if check_slot and updated.is_active:
                    conflicts = self._overlapping(
                        session, updated.creator_id, updated.booking_date, updated.ends_at, updated.id, lock=True
                    )
                    if conflicts:
                        raise SlotConflict(conflicting_ids=[r.id for r in conflicts])
                _booking_to_row(updated, row)
        except IntegrityError as exc:
            self._raise_if_overlap_violation(exc)
            raise
        return updated

    def get_creator(self, creator_id: str) -> CreatorProfile | None:
        with self._sessions() as session:
            row = session.get(CreatorRow, creator_id)
            if row is None:
                return None
            return CreatorProfile(
                id=row.id, full_name=row.full_name, contact_email=row.contact_email, timezone=row.timezone
            )

    def save_creator(self, creator: CreatorProfile) -> None:
        with self._sessions.begin() as session:
            session.merge(
                CreatorRow(
                    id=creator.id,
                    full_name=creator.full_name,
                    contact_email=creator.contact_email,
                    timezone=creator.timezone,
                )
            )

    def get_availability(self, creator_id: str) -> list[AvailabilityWindow]:
        stmt = (
            select(AvailabilityRow)
            .where(AvailabilityRow.creator_id == creator_id)
            .order_by(AvailabilityRow.day_of_week, AvailabilityRow.start_time)
        )
        with self._sessions() as session:
            return [
                AvailabilityWindow(
                    day_of_week=r.day_of_week,
                    start_time=r.start_time,
                    end_time=r.end_time,
                    is_available=r.is_available,
                )
                for r in session.scalars(stmt)
            ]

    def save_availability(self, creator_id: str, windows: list[AvailabilityWindow]) -> None:
        with self._sessions.begin() as session:
            session.execute(delete(AvailabilityRow).where(AvailabilityRow.creator_id == creator_id))
            session.add_all(
                AvailabilityRow(
                    creator_id=creator_id,
                    day_of_week=w.day_of_week,
                    start_time=w.start_time,
                    end_time=w.end_time,
                    is_available=w.is_available,
                )
                for w in windows
            )

    def get_blocked_dates(self, creator_id: str) -> list[BlockedDateRange]:
        stmt = select(BlockedDateRow).where(BlockedDateRow.creator_id == creator_id).order_by(BlockedDateRow.start_date)
        with self._sessions() as session:
            return [
                BlockedDateRange(start_date=r.start_date, end_date=r.end_date, reason=r.reason)
                for r in session.scalars(stmt)
            ]

    def add_blocked_dates(self, creator_id: str, blocked: BlockedDateRange) -> None:
        with self._sessions.begin() as session:
            session.add(
                BlockedDateRow(
                    creator_id=creator_id,
                    start_date=blocked.start_date,
                    end_date=blocked.end_date,
                    reason=blocked.reason,
                )
            )

    def get_calendar_credential(self, creator_id: str) -> CalendarCredential | None:
        with self._sessions() as session:
            row = session.get(CalendarTokenRow, creator_id)
            if row is None:
                return None
            return CalendarCredential(
                creator_id=row.creator_id,
                access_token=row.access_token,
                refresh_token=row.refresh_token,
                expires_at=_utc(row.expires_at),
            )

    def save_calendar_credential(self, credential: CalendarCredential) -> None:
        with self._sessions.begin() as session:
            session.merge(
                CalendarTokenRow(
                    creator_id=credential.creator_id,
                    access_token=credential.access_token,
                    refresh_token=credential.refresh_token,
                    expires_at=_utc(credential.expires_at),
                )
            )

    def create_checkout_session(self, session_record: CheckoutSession) -> CheckoutSession:
        with self._sessions.begin() as session:
            session.add(
                CheckoutSessionRow(
                    id=session_record.id,
                    provider_session_id=session_record.provider_session_id,
                    booking_id=session_record.booking_id,
                    creator_id=session_record.creator_id,
                    amount=session_record.amount,
                    currency=session_record.currency,
                    url=session_record.url,
                    status=session_record.status.value,
                    payment_intent_id=session_record.payment_intent_id,
                    created_at=_utc(session_record.created_at),
                )
            )
        return session_record

    def get_checkout_session(self, provider_session_id: str) -> CheckoutSession | None:
        stmt = select(CheckoutSessionRow).where(CheckoutSessionRow.provider_session_id == provider_session_id)
        with self._sessions() as session:
            row = session.scalars(stmt).first()
            return _row_to_checkout(row) if row else None

    def find_checkout_session_by_payment_intent(self, payment_intent_id: str) -> CheckoutSession | None:
        stmt = select(CheckoutSessionRow).where(CheckoutSessionRow.payment_intent_id == payment_intent_id)
        with self._sessions() as session:
            row = session.scalars(stmt).first()
            return _row_to_checkout(row) if row else None

    def update_checkout_session(self, provider_session_id: str, changes: dict[str, Any]) -> CheckoutSession | None:
        stmt = select(CheckoutSessionRow).where(CheckoutSessionRow.provider_session_id == provider_session_id)
        with self._sessions.begin() as session:
            row = session.scalars(stmt).first()
            if row is None:
                return None
            for key, value in changes.items():
                if value is None:
                    continue
                setattr(row, key, value.value if isinstance(value, CheckoutStatus) else value)
            return _row_to_checkout(row)

    def record_revenue(self, creator_id: str, amount: Decimal, source_type: str, occurred_at: datetime) -> None:
        with self._sessions.begin() as session:
            session.add(
                RevenueEventRow(
                    creator_id=creator_id,
                    amount=amount,
                    source_type=source_type,
                    occurred_at=_utc(occurred_at),
                )
            )

    def revenue_total(self, creator_id: str) -> Decimal:
        stmt = select(RevenueEventRow.amount).where(RevenueEventRow.creator_id == creator_id)
        with self._sessions() as session:
            return sum((Decimal(a) for a in session.scalars(stmt)), Decimal("0"))
