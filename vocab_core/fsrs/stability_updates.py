"""
Stability and Difficulty Updates

Implements the FSRS-5 update rules used by the scheduler.

Key principles:
- Spaced, effortful success produces the largest stability gains
- Failures shrink stability, never grow it
- Same-day repetitions use a separate short-term rule
- Difficulty drifts with the grade and reverts toward the Easy baseline
"""

from __future__ import annotations
import math
from collections.abc import Sequence

from vocab_core.fsrs.constants import (
    Grade,
    DECAY,
    FACTOR,
    S_MIN,
    D_MIN,
    D_MAX,
    MAXIMUM_INTERVAL,
)


def _clamp_difficulty(difficulty: float) -> float:
    return max(D_MIN, min(D_MAX, difficulty))


def initial_stability(w: Sequence[float], grade: Grade) -> float:
    """
    Stability after the very first grading (w0-w3 by grade).
    """
    return max(S_MIN, w[int(grade) - 1])


def initial_difficulty(w: Sequence[float], grade: Grade, clamp: bool = True) -> float:
    """
    Difficulty after the very first grading.

    Formula: D0(G) = w4 - e^(w5 * (G - 1)) + 1
    """
    difficulty = w[4] - math.exp(w[5] * (int(grade) - 1)) + 1
    return _clamp_difficulty(difficulty) if clamp else difficulty


def next_difficulty(w: Sequence[float], difficulty: float, grade: Grade) -> float:
    """
    Update difficulty after a review.

    Formulas:
        delta = -w6 * (G - 3)
        D' = D + delta * (10 - D) / 9       (linear damping)
        D'' = w7 * D0(EASY) + (1 - w7) * D'  (mean reversion)

    Returns:
        New difficulty clipped to [D_MIN, D_MAX]
    """
    delta = -w[6] * (int(grade) - 3)
    damped = difficulty + delta * (10 - difficulty) / 9
    target = initial_difficulty(w, Grade.EASY, clamp=False)
    reverted = w[7] * target + (1 - w[7]) * damped
    return _clamp_difficulty(reverted)


def recall_stability(
    w: Sequence[float],
    stability: float,
    difficulty: float,
    retrievability: float,
    grade: Grade
) -> float:
    """
    Stability after a successful inter-day recall (Hard/Good/Easy).

    Formula:
        S' = S * (1 + e^w8 * (11 - D) * S^-w9 * (e^(w10 * (1 - R)) - 1) * penalty * bonus)

    Lower R (riskier, well-spaced success) produces a larger increase.
    """
    if grade == Grade.AGAIN:
        raise ValueError("Use forget_stability for AGAIN grades")

    hard_penalty = w[15] if grade == Grade.HARD else 1.0
    easy_bonus = w[16] if grade == Grade.EASY else 1.0
    growth = (
        math.exp(w[8])
        * (11 - difficulty)
        * math.pow(stability, -w[9])
        * (math.exp((1 - retrievability) * w[10]) - 1)
        * hard_penalty
        * easy_bonus
    )
    return max(S_MIN, stability * (1 + growth))


def forget_stability(
    w: Sequence[float],
    stability: float,
    difficulty: float,
    retrievability: float
) -> float:
    """
    Post-lapse stability after an inter-day AGAIN.

    Formula:
        S'f = w11 * D^-w12 * ((S + 1)^w13 - 1) * e^(w14 * (1 - R))

    Capped at the current stability: forgetting never makes memory stronger.
    """
    lapsed = (
        w[11]
        * math.pow(difficulty, -w[12])
        * (math.pow(stability + 1, w[13]) - 1)
        * math.exp((1 - retrievability) * w[14])
    )
    return max(S_MIN, min(lapsed, stability))


def short_term_stability(w: Sequence[float], stability: float, grade: Grade) -> float:
    """
    Stability after a same-day repetition.

    Formula: S' = S * e^(w17 * (G - 3 + w18))
    """
    return max(S_MIN, stability * math.exp(w[17] * (int(grade) - 3 + w[18])))


def next_interval(stability: float, requested_retention: float) -> int:
    """
    Days until recall probability drops to the requested retention.

    Formula: I = S / FACTOR * (r^(1/DECAY) - 1)

    Returns:
        Whole days in [1, MAXIMUM_INTERVAL]
    """
    interval = stability / FACTOR * (requested_retention ** (1 / DECAY) - 1)
    return min(MAXIMUM_INTERVAL, max(1, round(interval)))


def order_intervals(hard: int, good: int, easy: int) -> tuple[int, int, int]:
    """
    Enforce Hard <= Good < Easy on the day intervals of a single review.
    """
    hard = min(hard, good)
    good = max(good, hard)
    easy = max(easy, good + 1)
    return hard, good, min(easy, MAXIMUM_INTERVAL)
