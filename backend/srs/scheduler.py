"""SM-2 style scheduler for vocabulary cards.

A simplified SuperMemo-2 variant with four answer buttons.
Reference: https://super-memory.com/english/ol/sm2.htm

Key concepts:
- Easiness factor (EF): Multiplier governing interval growth, never below 1.3.
- Interval: Days until the next review. 0 means the card has not graduated.
- Repetitions: Consecutive successful reviews since the last lapse.
- Rating: 1=Again, 2=Hard, 3=Good, 4=Easy

Every function here is pure: the current time is passed in and states are
returned as new values.
"""

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum, IntEnum

logger = logging.getLogger(__name__)

# Easiness factor bounds
DEFAULT_EASINESS_FACTOR = 2.5
MIN_EASINESS_FACTOR = 1.3
MAX_EASINESS_FACTOR = 10.0

# Interval after a lapse (rated Again)
RELEARN_INTERVAL_DAYS = 1

# Longest interval ever scheduled, about a hundred years
MAX_INTERVAL_DAYS = 36500

# Fixed intervals for the first two successful repetitions
GRADUATION_INTERVALS = {
    1: 1,  # first success: review tomorrow
    2: 6,  # second success: review in six days
}

# Interval multipliers applied on top of EF once a card has graduated
RATING_INTERVAL_MULTIPLIERS = {
    2: 0.8,  # Hard: slower growth
    3: 1.0,  # Good
    4: 1.3,  # Easy: bonus
}

# EF adjustments per rating
EASE_ADJUSTMENTS = {
    1: -0.20,  # Again
    2: -0.15,  # Hard
    3: 0.0,  # Good
    4: 0.15,  # Easy
}

# Maturity thresholds (days)
LEARNING_MAX_REPETITIONS = 1
LEARNING_INTERVAL_THRESHOLD = 1
MATURE_INTERVAL_THRESHOLD = 21
RETIRED_INTERVAL_THRESHOLD = 365


class QualityRating(IntEnum):
    """How well the learner recalled a card."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4

    @property
    def is_correct(self) -> bool:
        """Good and Easy count as correct for accuracy statistics."""
        return self >= QualityRating.GOOD

    @property
    def is_lapse(self) -> bool:
        return self == QualityRating.AGAIN


class Maturity(Enum):
    """Learning stage of a card, derived from its interval and repetitions."""

    NEW = "New"
    LEARNING = "Learning"
    YOUNG = "Young"
    MATURE = "Mature"
    RETIRED = "Retired"


@dataclass(frozen=True)
class LearningState:
    """The scheduling state of a single vocabulary word."""

    word_id: str
    easiness_factor: float = DEFAULT_EASINESS_FACTOR
    interval_days: int = 0
    repetitions: int = 0
    due_date: datetime | None = None  # None until the first review
    last_review_date: datetime | None = None
    total_reviews: int = 0
    correct_reviews: int = 0
    lapses: int = 0
    total_interval_days: int = 0  # sum of the intervals scheduled at each review

    @property
    def maturity(self) -> Maturity:
        return maturity_level(self.interval_days, self.repetitions)

    @property
    def is_new(self) -> bool:
        """True if the card has never been reviewed."""
        return self.total_reviews == 0 and self.due_date is None

    @property
    def is_lapsed(self) -> bool:
        """True if the card was forgotten and has not been recalled since."""
        return self.lapses > 0 and self.repetitions == 0

    def is_due(self, now: datetime) -> bool:
        """True if the card has been reviewed before and is due at ``now``."""
        return self.due_date is not None and self.due_date <= now


def new_state(word_id: str) -> LearningState:
    """Create the default state for a word that has never been reviewed."""
    return LearningState(word_id=word_id)


def clamp_rating(rating: object) -> QualityRating:
    """Coerce an untyped rating into the nearest valid QualityRating.

    Accepts QualityRating members, ints, floats and numeric strings. Values
    outside 1-4 are clamped; anything unparseable falls back to Again.
    """
    if isinstance(rating, QualityRating):
        return rating
    try:
        value = float(rating)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        logger.warning("Unparseable rating %r, treating as Again", rating)
        return QualityRating.AGAIN
    if math.isnan(value):
        logger.warning("NaN rating, treating as Again")
        return QualityRating.AGAIN
    value = min(float(QualityRating.EASY), max(float(QualityRating.AGAIN), value))
    return QualityRating(int(round(value)))


def sanitize_state(state: LearningState) -> LearningState:
    """Clamp out-of-range fields instead of rejecting the state."""
    easiness = state.easiness_factor
    if math.isnan(easiness):
        easiness = MIN_EASINESS_FACTOR
    easiness = min(MAX_EASINESS_FACTOR, max(MIN_EASINESS_FACTOR, easiness))

    interval = state.interval_days
    if not math.isfinite(interval):
        interval = MAX_INTERVAL_DAYS if interval > 0 else 0
    return replace(
        state,
        easiness_factor=easiness,
        interval_days=min(MAX_INTERVAL_DAYS, max(0, int(interval))),
        repetitions=max(0, int(state.repetitions)),
        total_reviews=max(0, state.total_reviews),
        correct_reviews=max(0, min(state.correct_reviews, max(0, state.total_reviews))),
        lapses=max(0, state.lapses),
        total_interval_days=max(0, state.total_interval_days),
    )


def maturity_level(interval_days: int, repetitions: int) -> Maturity:
    """Classify a card by its interval and repetition count."""
    if repetitions <= 0 and interval_days <= 0:
        return Maturity.NEW
    if repetitions <= LEARNING_MAX_REPETITIONS or interval_days < LEARNING_INTERVAL_THRESHOLD:
        return Maturity.LEARNING
    if interval_days < MATURE_INTERVAL_THRESHOLD:
        return Maturity.YOUNG
    if interval_days < RETIRED_INTERVAL_THRESHOLD:
        return Maturity.MATURE
    return Maturity.RETIRED


def next_interval(interval_days: int, repetitions: int, easiness_factor: float, rating: QualityRating) -> int:
    """Interval in days after a successful review.

    Args:
        interval_days: The interval before this review.
        repetitions: The repetition count after this review (already incremented).
        easiness_factor: The EF before this review.
        rating: Hard, Good or Easy.

    Returns:
        The new interval, between one day and MAX_INTERVAL_DAYS.
    """
    if repetitions in GRADUATION_INTERVALS:
        return GRADUATION_INTERVALS[repetitions]
    grown = interval_days * easiness_factor * RATING_INTERVAL_MULTIPLIERS[int(rating)]
    if not math.isfinite(grown):
        return MAX_INTERVAL_DAYS
    return min(MAX_INTERVAL_DAYS, max(1, round(grown)))


def adjust_easiness(easiness_factor: float, rating: QualityRating) -> float:
    """Apply the per-rating EF adjustment, kept within MIN_EASINESS_FACTOR and MAX_EASINESS_FACTOR."""
    adjusted = round(easiness_factor + EASE_ADJUSTMENTS[int(rating)], 4)
    return min(MAX_EASINESS_FACTOR, max(MIN_EASINESS_FACTOR, adjusted))


def next_state(state: LearningState, rating: object, now: datetime) -> LearningState:
    """Apply a review rating and return the card's next state.

    The due date is always counted from ``now`` in whole calendar days, not
    from the previous due date, so early and late reviews schedule alike.

    Args:
        state: Current learning state (may be a brand-new card).
        rating: A QualityRating, or an untyped value to be clamped.
        now: The time of the review.

    Returns:
        A new LearningState. The input is never modified.
    """
    rating = clamp_rating(rating)
    state = sanitize_state(state)

    if rating.is_lapse:
        repetitions = 0
        interval = RELEARN_INTERVAL_DAYS
        lapses = state.lapses + 1
    else:
        repetitions = state.repetitions + 1
        interval = next_interval(state.interval_days, repetitions, state.easiness_factor, rating)
        lapses = state.lapses

    # Due dates past datetime.max cannot be represented
    interval = min(interval, (datetime.max - now).days)

    updated = replace(
        state,
        easiness_factor=adjust_easiness(state.easiness_factor, rating),
        interval_days=interval,
        repetitions=repetitions,
        due_date=now + timedelta(days=interval),
        last_review_date=now,
        total_reviews=state.total_reviews + 1,
        correct_reviews=state.correct_reviews + (1 if rating.is_correct else 0),
        lapses=lapses,
        total_interval_days=state.total_interval_days + interval,
    )
    logger.debug(
        "Word %s rated %s: interval %d -> %d, EF %.2f -> %.2f",
        state.word_id,
        rating.name,
        state.interval_days,
        updated.interval_days,
        state.easiness_factor,
        updated.easiness_factor,
    )
    return updated
