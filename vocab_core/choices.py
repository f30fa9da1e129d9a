"""
Multiple-choice options for quiz trials.
"""

from __future__ import annotations

import logging
import random
from typing import Optional, Sequence

from vocab_core.schemas import VocabularyItem

logger = logging.getLogger(__name__)

DEFAULT_DISTRACTORS = 3


def generate_choices(
    correct: VocabularyItem,
    pool: Sequence[VocabularyItem],
    n: int = DEFAULT_DISTRACTORS,
    rng: Optional[random.Random] = None
) -> list[str]:
    """
    Build the answer options for a quiz on `correct`.

    Samples `n` distinct distractor glosses from the pool (excluding the
    correct item and any item sharing its gloss), adds the correct gloss and
    shuffles. A small pool yields fewer options instead of an error.

    Args:
        correct: Item being tested
        pool: Candidate items for distractors
        n: Number of distractors wanted
        rng: Random source (an unseeded Random if omitted)

    Returns:
        Between 1 and n + 1 glosses, in random order
    """
    rng = rng or random.Random()

    candidates: list[str] = []
    seen = {correct.gloss}
    for item in pool:
        if item.id == correct.id or item.gloss in seen:
            continue
        seen.add(item.gloss)
        candidates.append(item.gloss)

    if len(candidates) < n:
        logger.debug(
            "Only %d distractors available for %s (wanted %d)",
            len(candidates), correct.id, n,
        )

    options = rng.sample(candidates, min(n, len(candidates)))
    options.append(correct.gloss)
    rng.shuffle(options)
    return options
