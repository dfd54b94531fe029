from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Optional

from sqlalchemy import JSON, CheckConstraint, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, Boolean, Date, DateTime, Integer, Numeric, String


class Base(DeclarativeBase):
    pass


class BookingStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"
    BLOCKED = "blocked"


ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.BLOCKED})


class PaymentStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    NOT_APPLICABLE = "not_applicable"


class ObligationStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RECORD = "record"
    REFUNDED = "refunded"
    FAILED = "failed"


class ParticipantKind(StrEnum):
    MEMBER = "member"
    GUEST = "guest"


class BlockReason(StrEnum):
    MAINTENANCE = "maintenance"
    PRIVATE_EVENT = "private_event"
    WEATHER = "weather"
    OTHER = "other"


class DueDatePolicy(StrEnum):
    POST_PLAY = "post_play"
    EARLIEST_OF_WEEK_OR_DAY_BEFORE = "earliest_of_week_or_day_before"


class ExternalBlockStatus(StrEnum):
    ACTIVE = "active"
    CLOSED = "closed"
    CANCELLED = "cancelled"


def _str_enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda members: [e.value for e in members],
        native_enum=False,
    )


class Member(Base):
    __tablename__ = "members"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="member")
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("duration >= 1", name="chk_bookings_duration"),
        CheckConstraint("end_hour = start_hour + duration", name="chk_bookings_end_hour"),
        CheckConstraint("total_fee >= 0", name="chk_bookings_total_fee"),
        # active_start_hour is NULL unless the booking occupies the timeline,
        # so only active rows compete for (booking_date, start_hour).
        UniqueConstraint("booking_date", "active_start_hour", name="uq_bookings_active_start"),
        Index("idx_bookings_date", "booking_date"),
        Index("idx_bookings_reserver", "reserver_id"),
        Index("idx_bookings_date_status", "booking_date", "status"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    reserver_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    booking_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_hour: Mapped[int] = mapped_column(Integer, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    end_hour: Mapped[int] = mapped_column(Integer, nullable=False)
    active_start_hour: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    status: Mapped[BookingStatus] = mapped_column(
        _str_enum(BookingStatus), nullable=False, default=BookingStatus.PENDING
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        _str_enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING
    )
    total_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    paid_with_credit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    block_reason: Mapped[Optional[BlockReason]] = mapped_column(_str_enum(BlockReason), nullable=True)
    block_notes: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    cancel_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    participants: Mapped[list["BookingParticipant"]] = relationship(
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingParticipant.position",
        lazy="selectin",
    )

    def set_range(self, start_hour: int, duration: int) -> None:
        self.start_hour = start_hour
        self.duration = duration
        self.end_hour = start_hour + duration
        self.sync_occupancy()

    def set_status(self, status: BookingStatus) -> None:
        self.status = status
        self.sync_occupancy()

    def sync_occupancy(self) -> None:
        self.active_start_hour = self.start_hour if self.status in ACTIVE_STATUSES else None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class BookingParticipant(Base):
    __tablename__ = "booking_participants"
    __table_args__ = (
        UniqueConstraint("booking_id", "position", name="uq_participants_position"),
        Index("idx_participants_booking", "booking_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    kind: Mapped[ParticipantKind] = mapped_column(_str_enum(ParticipantKind), nullable=False)
    member_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    booking: Mapped["Booking"] = relationship(back_populates="participants")


class Obligation(Base):
    __tablename__ = "obligations"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="chk_obligations_amount"),
        Index("idx_obligations_booking", "booking_id"),
        Index("idx_obligations_member_status", "member_id", "status"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    # Back-reference only: obligations survive booking edits as audit history.
    booking_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    member_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    due_policy: Mapped[DueDatePolicy] = mapped_column(_str_enum(DueDatePolicy), nullable=False)
    status: Mapped[ObligationStatus] = mapped_column(
        _str_enum(ObligationStatus), nullable=False, default=ObligationStatus.PENDING
    )
    is_reserver: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    member_share: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    guest_fees: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class ExternalBlock(Base):
    """Hours reserved by the outside event system; never written by this service."""

    __tablename__ = "external_blocks"
    __table_args__ = (Index("idx_external_blocks_date", "event_date"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    blocked_hours: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[ExternalBlockStatus] = mapped_column(
        _str_enum(ExternalBlockStatus), nullable=False, default=ExternalBlockStatus.ACTIVE
    )
