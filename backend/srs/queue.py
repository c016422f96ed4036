"""Due-card selection for quiz sessions.

Merges cards due for review with never-seen cards, applies the daily
caps, and shuffles the result so practice order varies between sessions.
"""

import logging
import random
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, time

from backend.config import settings
from backend.srs.scheduler import LearningState

logger = logging.getLogger(__name__)


@dataclass
class QuizConfig:
    """Per-user quiz settings."""

    new_cards_per_day: int = field(default_factory=lambda: settings.new_cards_per_day)
    reviews_per_day: int = field(default_factory=lambda: settings.reviews_per_day)
    learn_ahead: bool = field(default_factory=lambda: settings.learn_ahead)
    quiz_bidirectional: bool = field(default_factory=lambda: settings.quiz_bidirectional)


def _review_cutoff(now: datetime, learn_ahead: bool) -> datetime:
    """Latest due date that counts as due. Learning ahead pulls in the rest of today."""
    if learn_ahead:
        return datetime.combine(now.date(), time.max)
    return now


def split_candidates(
    candidate_word_ids: Iterable[str],
    states: Mapping[str, LearningState],
    cutoff: datetime,
) -> tuple[list[LearningState], list[str]]:
    """Split candidates into due reviews and new word IDs.

    Due reviews are ordered lapsed cards first, then most overdue first.

    Duplicate IDs are dropped; new words keep their candidate order.
    """
    due: list[LearningState] = []
    new: list[str] = []
    seen: set[str] = set()

    for word_id in candidate_word_ids:
        if word_id in seen:
            continue
        seen.add(word_id)

        state = states.get(word_id)
        if state is None or state.is_new:
            new.append(word_id)
        elif state.is_due(cutoff):
            due.append(state)

    due.sort(key=lambda s: (not s.is_lapsed, s.due_date))  # type: ignore[arg-type, return-value]
    return due, new


def select_due_cards(
    candidate_word_ids: Iterable[str],
    states: Mapping[str, LearningState],
    config: QuizConfig,
    now: datetime,
    rng: random.Random | None = None,
) -> list[str]:
    """Pick the word IDs to quiz in this session.

    Args:
        candidate_word_ids: Words from the selected lists.
        states: Learning states keyed by word ID. Missing words are new.
        config: Daily caps and the learn-ahead flag.
        now: Current time.
        rng: Random source for the shuffle (defaults to the module RNG).

    Returns:
        Up to ``reviews_per_day`` due words (lapsed first, then most
        overdue) plus up to ``new_cards_per_day`` new words, in random order.
    """
    due, new = split_candidates(candidate_word_ids, states, _review_cutoff(now, config.learn_ahead))

    selected_due = [s.word_id for s in due[: max(0, config.reviews_per_day)]]
    selected_new = new[: max(0, config.new_cards_per_day)]

    # random.shuffle is a Fisher-Yates shuffle
    result = selected_due + selected_new
    (rng or random).shuffle(result)

    logger.info(
        "Selected %d due + %d new = %d cards (%d due and %d new available)",
        len(selected_due),
        len(selected_new),
        len(result),
        len(due),
        len(new),
    )
    return result
