"""Trust score value and the declarative trust adjustment policy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Mapping

from wanda.core.errors import InvalidTrustScore

MIN_SCORE = 0
MAX_SCORE = 100
DEFAULT_SCORE = 50
HIGH_RELIABILITY_SCORE = 80


@dataclass(frozen=True, slots=True)
class TrustScore:
    """Bounded reputation value; construction outside [0, 100] fails."""

    value: int

    DEFAULT: ClassVar["TrustScore"]
    MIN: ClassVar["TrustScore"]
    MAX: ClassVar["TrustScore"]

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise InvalidTrustScore(self.value)
        if not MIN_SCORE <= self.value <= MAX_SCORE:
            raise InvalidTrustScore(self.value)

    def is_high_reliability(self) -> bool:
        return self.value >= HIGH_RELIABILITY_SCORE


TrustScore.DEFAULT = TrustScore(DEFAULT_SCORE)
TrustScore.MIN = TrustScore(MIN_SCORE)
TrustScore.MAX = TrustScore(MAX_SCORE)


class TrustImpact(str, Enum):
    """Reputation events that move a user's trust score."""

    POSITIVE_VALIDATION = "positive_validation"
    OFFICIAL_POST_PUBLISHED = "official_post_published"
    REPORT_CONFIRMED = "report_confirmed"
    FAKE_NEWS_PUBLISHED = "fake_news_published"


IMPACT_DELTAS: Mapping[TrustImpact, int] = {
    TrustImpact.POSITIVE_VALIDATION: 5,
    TrustImpact.OFFICIAL_POST_PUBLISHED: 10,
    TrustImpact.REPORT_CONFIRMED: -20,
    TrustImpact.FAKE_NEWS_PUBLISHED: -50,
}

# Keyed by enum value so this module stays free of validation/moderation imports.
VOTE_IMPACTS: Mapping[str, TrustImpact] = {
    "confirm": TrustImpact.POSITIVE_VALIDATION,
    "refute": TrustImpact.REPORT_CONFIRMED,
}

REPORT_IMPACTS: Mapping[str, TrustImpact] = {
    "fake_news": TrustImpact.FAKE_NEWS_PUBLISHED,
}
DEFAULT_REPORT_IMPACT = TrustImpact.REPORT_CONFIRMED


def clamp(value: int, minimum: int = MIN_SCORE, maximum: int = MAX_SCORE) -> int:
    return max(minimum, min(maximum, value))


def delta_for(impact: TrustImpact) -> int:
    return IMPACT_DELTAS[impact]


def adjust(current: TrustScore, impact: TrustImpact) -> TrustScore:
    """Apply an impact and clamp; total over every score and impact."""

    return TrustScore(clamp(current.value + IMPACT_DELTAS[impact]))


def impact_for_vote(vote_type: Enum | str) -> TrustImpact:
    key = vote_type.value if isinstance(vote_type, Enum) else str(vote_type)
    return VOTE_IMPACTS[key.lower()]


def impact_for_report(reason: Enum | str) -> TrustImpact:
    key = reason.value if isinstance(reason, Enum) else str(reason)
    return REPORT_IMPACTS.get(key.lower(), DEFAULT_REPORT_IMPACT)


__all__ = [
    "DEFAULT_REPORT_IMPACT",
    "IMPACT_DELTAS",
    "REPORT_IMPACTS",
    "TrustImpact",
    "TrustScore",
    "VOTE_IMPACTS",
    "adjust",
    "clamp",
    "delta_for",
    "impact_for_report",
    "impact_for_vote",
]
