import datetime as dt
from decimal import Decimal
from typing import Any, Optional, Sequence, Union
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, field_serializer

from .domain.allocation import AllocationLine
from .domain.availability import AvailabilityResult, HourAvailability
from .domain.services import OverdueItem
from .models import BlockReason, Booking, BookingStatus, Obligation, ObligationStatus, ParticipantKind, PaymentStatus
from .usecases.fees import FeeQuote, fee_per_player
from .utils.time import utc_naive_to_local


class BookingCreate(BaseModel):
    date: dt.date
    start_hour: int = Field(ge=0, le=23)
    duration: int = Field(ge=1)
    participant_names: list[str] = Field(min_length=1)
    requested_total_fee: Optional[Decimal] = Field(default=None, ge=0)


class BookingUpdate(BaseModel):
    date: Optional[dt.date] = None
    start_hour: Optional[int] = Field(default=None, ge=0, le=23)
    duration: Optional[int] = Field(default=None, ge=1)
    participant_names: Optional[list[str]] = Field(default=None, min_length=1)
    version: Optional[int] = Field(default=None, ge=1)


class BookingCancel(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=255)


class BlockCreate(BaseModel):
    date: dt.date
    start_hour: int = Field(ge=0, le=23)
    duration: int = Field(ge=1)
    block_reason: BlockReason
    block_notes: Optional[str] = Field(default=None, max_length=200)


class BlockUpdate(BaseModel):
    date: Optional[dt.date] = None
    start_hour: Optional[int] = Field(default=None, ge=0, le=23)
    duration: Optional[int] = Field(default=None, ge=1)
    block_reason: Optional[BlockReason] = None
    block_notes: Optional[str] = Field(default=None, max_length=200)


class StatusChange(BaseModel):
    status: BookingStatus
    reason: Optional[str] = Field(default=None, max_length=255)


class ManualObligationCreate(BaseModel):
    member_id: int = Field(ge=1)
    amount: Decimal = Field(gt=0)
    description: Optional[str] = Field(default=None, max_length=255)


class FeeQuoteRequest(BaseModel):
    start_hour: int = Field(ge=0, le=23)
    duration: int = Field(ge=1)
    # Plain names or stored {"name", "isMember", "userId"} rows.
    players: list[Union[str, dict[str, Any]]] = Field(default_factory=list)
    legacy: bool = False


class ParticipantRead(BaseModel):
    name: str
    kind: ParticipantKind
    member_id: Optional[int] = None


class ObligationRead(BaseModel):
    obligation_id: int
    booking_id: int
    member_id: int
    amount: Decimal
    member_share: Decimal
    guest_fees: Decimal
    is_reserver: bool
    status: ObligationStatus
    due_at: dt.datetime
    description: str

    @field_serializer("amount", "member_share", "guest_fees")
    def _ser_money(self, value: Decimal) -> str:
        return str(value)

    @classmethod
    def from_db(cls, obligation: Obligation, *, tz: ZoneInfo) -> "ObligationRead":
        return cls(
            obligation_id=obligation.id,
            booking_id=obligation.booking_id,
            member_id=obligation.member_id,
            amount=obligation.amount,
            member_share=obligation.member_share,
            guest_fees=obligation.guest_fees,
            is_reserver=obligation.is_reserver,
            status=obligation.status,
            due_at=utc_naive_to_local(obligation.due_at, tz),
            description=obligation.description,
        )


class BookingRead(BaseModel):
    booking_id: int
    reserver_id: int
    date: dt.date
    start_hour: int
    duration: int
    end_hour: int
    time_display: str
    status: BookingStatus
    payment_status: PaymentStatus
    total_fee: Decimal
    fee_per_player: Decimal
    participants: list[ParticipantRead]
    obligation_count: int
    version: int
    block_reason: Optional[BlockReason] = None
    block_notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    refund_due: Optional[Decimal] = None
    obligations: list[ObligationRead] = Field(default_factory=list)

    @field_serializer("total_fee", "fee_per_player")
    def _ser_money(self, value: Decimal) -> str:
        return str(value)

    @field_serializer("refund_due")
    def _ser_refund(self, value: Optional[Decimal]) -> Optional[str]:
        return None if value is None else str(value)

    @classmethod
    def from_db(
        cls,
        *,
        booking: Booking,
        obligation_count: int,
        refund_due: Optional[Decimal] = None,
        obligations: Sequence[ObligationRead] = (),
    ) -> "BookingRead":
        participants = [
            ParticipantRead(name=p.name, kind=p.kind, member_id=p.member_id) for p in booking.participants
        ]
        return cls(
            booking_id=booking.id,
            reserver_id=booking.reserver_id,
            date=booking.booking_date,
            start_hour=booking.start_hour,
            duration=booking.duration,
            end_hour=booking.end_hour,
            time_display=f"{booking.start_hour}:00 - {booking.end_hour}:00",
            status=booking.status,
            payment_status=booking.payment_status,
            total_fee=booking.total_fee,
            fee_per_player=fee_per_player(booking.total_fee, len(participants)),
            participants=participants,
            obligation_count=obligation_count,
            version=booking.version,
            block_reason=booking.block_reason,
            block_notes=booking.block_notes,
            cancel_reason=booking.cancel_reason,
            refund_due=refund_due,
            obligations=list(obligations),
        )


class ExternalEventRead(BaseModel):
    event_id: int
    title: str


class HourAvailabilityRead(BaseModel):
    hour: int
    time_display: str
    available_as_start: bool
    available_as_end: bool
    occupying_booking_id: Optional[int] = None
    occupying_status: Optional[BookingStatus] = None
    external_event: Optional[ExternalEventRead] = None
    closure: bool = False

    @classmethod
    def from_domain(cls, entry: HourAvailability) -> "HourAvailabilityRead":
        event = entry.external_event
        return cls(
            hour=entry.hour,
            time_display=entry.time_display,
            available_as_start=entry.available_as_start,
            available_as_end=entry.available_as_end,
            occupying_booking_id=entry.occupying_booking_id,
            occupying_status=entry.occupying_status,
            external_event=ExternalEventRead(event_id=event.event_id, title=event.title) if event else None,
            closure=entry.closure,
        )


class RangeCheckRead(BaseModel):
    date: dt.date
    start_hour: int
    end_hour: int
    available: bool
    conflicting_hours: list[int]
    conflicting_booking_ids: list[int]
    closure_hours: list[int]
    external_event: Optional[ExternalEventRead] = None
    external_hours: list[int]
    sources: list[str]

    @classmethod
    def from_domain(cls, *, day: dt.date, start_hour: int, end_hour: int, result: AvailabilityResult) -> "RangeCheckRead":
        event = result.external_event
        return cls(
            date=day,
            start_hour=start_hour,
            end_hour=end_hour,
            available=result.available,
            conflicting_hours=result.conflicting_hours,
            conflicting_booking_ids=result.conflicting_booking_ids,
            closure_hours=result.closure_hours,
            external_event=ExternalEventRead(event_id=event.event_id, title=event.title) if event else None,
            external_hours=result.external_hours,
            sources=result.sources,
        )


class OverdueItemRead(BaseModel):
    id: int
    kind: str
    amount: Decimal
    due_date: dt.datetime
    days_overdue: int
    description: str

    @field_serializer("amount")
    def _ser_money(self, value: Decimal) -> str:
        return str(value)

    @classmethod
    def from_domain(cls, item: OverdueItem, *, tz: ZoneInfo) -> "OverdueItemRead":
        return cls(
            id=item.item_id,
            kind=item.kind,
            amount=item.amount,
            due_date=utc_naive_to_local(item.due_at, tz),
            days_overdue=item.days_overdue,
            description=item.description,
        )


class HourFeeRead(BaseModel):
    hour: int
    is_peak: bool
    base: Decimal
    guest_surcharge: Decimal


class SplitLineRead(BaseModel):
    member_id: int
    name: str
    amount: Decimal
    member_share: Decimal
    guest_fees: Decimal
    is_reserver: bool

    @classmethod
    def from_domain(cls, line: AllocationLine) -> "SplitLineRead":
        return cls(
            member_id=line.member_id,
            name=line.name,
            amount=line.amount,
            member_share=line.member_share,
            guest_fees=line.guest_fees,
            is_reserver=line.is_reserver,
        )


class FeeQuoteRead(BaseModel):
    start_hour: int
    end_hour: int
    legacy: bool
    total: Decimal
    raw_total: Optional[Decimal] = None
    rounding_adjustment: Optional[Decimal] = None
    guest_count: int = 0
    fee_per_player: Decimal
    participants: list[ParticipantRead] = Field(default_factory=list)
    hours: list[HourFeeRead] = Field(default_factory=list)
    split: list[SplitLineRead] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, quote: FeeQuote, *, player_count: int) -> "FeeQuoteRead":
        breakdown = quote.breakdown
        return cls(
            start_hour=quote.start_hour,
            end_hour=quote.end_hour,
            legacy=quote.legacy,
            total=quote.total,
            raw_total=breakdown.raw_total if breakdown else None,
            rounding_adjustment=breakdown.rounding_adjustment if breakdown else None,
            guest_count=breakdown.guest_count if breakdown else 0,
            fee_per_player=fee_per_player(quote.total, player_count),
            participants=[
                ParticipantRead(name=p.name, kind=p.kind, member_id=p.member_id) for p in quote.participants
            ],
            hours=[
                HourFeeRead(hour=h.hour, is_peak=h.is_peak, base=h.base, guest_surcharge=h.guest_surcharge)
                for h in (breakdown.hours if breakdown else [])
            ],
            split=[SplitLineRead.from_domain(line) for line in quote.split],
        )
