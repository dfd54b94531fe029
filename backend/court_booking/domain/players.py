"""Participant classification against the member roster.

Names resolve to members by exact (case-insensitive, trimmed) match first and
then by normalized Levenshtein similarity. Two strategies exist because the
booking flow and the fee-splitting of older rows have always used different
thresholds; they are kept apart on purpose and selected by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Iterable, Mapping, Sequence, Union

from ..models import ParticipantKind


@dataclass(frozen=True)
class RosterEntry:
    member_id: int
    full_name: str

    @property
    def key(self) -> str:
        return normalize_name(self.full_name)


@dataclass(frozen=True)
class MemberParticipant:
    name: str
    member_id: int
    kind: ParticipantKind = ParticipantKind.MEMBER

    @property
    def is_member(self) -> bool:
        return True

    @property
    def is_guest(self) -> bool:
        return False


@dataclass(frozen=True)
class GuestParticipant:
    name: str
    kind: ParticipantKind = ParticipantKind.GUEST

    @property
    def member_id(self) -> None:
        return None

    @property
    def is_member(self) -> bool:
        return False

    @property
    def is_guest(self) -> bool:
        return True


Participant = Union[MemberParticipant, GuestParticipant]


class MatchStrategy(StrEnum):
    STRICT = "strict"  # booking resolution
    LENIENT = "lenient"  # fee-splitting of unresolved rows


STRICT_THRESHOLD = 0.8
LENIENT_THRESHOLD = 0.6
WORD_THRESHOLD = 0.8
MIN_FRAGMENT_LENGTH = 3


def normalize_name(name: str) -> str:
    return name.strip().lower()


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """1 - distance / max length; 1.0 for identical strings, 0.0 if either is empty."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    longest = max(len(a), len(b))
    return (longest - levenshtein(a, b)) / longest


def _best_similar(name: str, roster: Sequence[RosterEntry], threshold: float) -> RosterEntry | None:
    best: RosterEntry | None = None
    best_score = threshold
    for entry in roster:
        score = similarity(name, entry.key)
        if score > best_score:
            best, best_score = entry, score
    return best


def _lenient_fragment_match(name: str, roster: Sequence[RosterEntry]) -> RosterEntry | None:
    for entry in roster:
        if len(name) >= MIN_FRAGMENT_LENGTH and name in entry.key:
            return entry
        input_words = [w for w in name.split() if len(w) >= MIN_FRAGMENT_LENGTH]
        roster_words = [w for w in entry.key.split() if len(w) >= MIN_FRAGMENT_LENGTH]
        if any(similarity(iw, rw) > WORD_THRESHOLD for iw in input_words for rw in roster_words):
            return entry
    return None


def match_member(name: str, roster: Sequence[RosterEntry], strategy: MatchStrategy = MatchStrategy.STRICT) -> RosterEntry | None:
    key = normalize_name(name)
    if not key:
        return None
    for entry in roster:
        if entry.key == key:
            return entry
    if strategy == MatchStrategy.STRICT:
        return _best_similar(key, roster, STRICT_THRESHOLD)
    return _best_similar(key, roster, LENIENT_THRESHOLD) or _lenient_fragment_match(key, roster)


def classify(
    names: Iterable[str],
    roster: Sequence[RosterEntry],
    strategy: MatchStrategy = MatchStrategy.STRICT,
) -> list[Participant]:
    """One participant per input name, in input order."""
    participants: list[Participant] = []
    for raw in names:
        name = raw.strip()
        entry = match_member(name, roster, strategy)
        if entry is None:
            participants.append(GuestParticipant(name=name))
        else:
            participants.append(MemberParticipant(name=name, member_id=entry.member_id))
    return participants


def normalize_players(
    players: Iterable[Union[str, Mapping[str, Any]]],
    roster: Sequence[RosterEntry],
    strategy: MatchStrategy = MatchStrategy.LENIENT,
) -> list[Participant]:
    """Convert stored player shapes into participants.

    Accepts plain names (older rows, classified with ``strategy``) and
    ``{"name", "isMember", "userId"}`` mappings whose classification is kept.
    """
    result: list[Participant] = []
    for player in players:
        if isinstance(player, str):
            result.extend(classify([player], roster, strategy))
            continue
        name = str(player.get("name", "")).strip()
        member_id = player.get("userId", player.get("member_id"))
        if player.get("isMember") and member_id is not None:
            result.append(MemberParticipant(name=name, member_id=int(member_id)))
        else:
            result.append(GuestParticipant(name=name))
    return result


def members_of(participants: Iterable[Participant]) -> list[MemberParticipant]:
    return [p for p in participants if isinstance(p, MemberParticipant)]


def guest_count(participants: Iterable[Participant]) -> int:
    return sum(1 for p in participants if isinstance(p, GuestParticipant))
