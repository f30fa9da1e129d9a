"""
FSRS Constants and Parameters

All configurable parameters for the memory model in one place.
Default weights are the FSRS-5 preset.
"""

from datetime import timedelta
from enum import IntEnum


# ---- Grades ----

class Grade(IntEnum):
    """Learner's self-assessed recall quality."""
    AGAIN = 1   # Retrieval failed
    HARD = 2    # Retrieved with high effort
    GOOD = 3    # Retrieved normally
    EASY = 4    # Retrieved fluently


# ---- Model Weights (w0-w18) ----

DEFAULT_PARAMETERS = (
    0.40255,   # w0  initial stability, Again
    1.18385,   # w1  initial stability, Hard
    3.173,     # w2  initial stability, Good
    15.69105,  # w3  initial stability, Easy
    7.1949,    # w4  initial difficulty
    0.5345,    # w5  initial difficulty slope
    1.4604,    # w6  difficulty step
    0.0046,    # w7  mean reversion weight
    1.54575,   # w8  recall stability scale
    0.1192,    # w9  recall stability decay
    1.01925,   # w10 retrievability weight
    1.9395,    # w11 post-lapse scale
    0.11,      # w12 post-lapse difficulty exponent
    0.29605,   # w13 post-lapse stability exponent
    2.2698,    # w14 post-lapse retrievability weight
    0.2315,    # w15 hard penalty
    2.9898,    # w16 easy bonus
    0.51655,   # w17 short-term scale
    0.6621,    # w18 short-term offset
)


# ---- Forgetting Curve ----
# R(t, S) = (1 + FACTOR * t / S) ^ DECAY, so that R = 0.9 when t = S

DECAY = -0.5
FACTOR = 0.9 ** (1 / DECAY) - 1


# ---- Bounds ----

S_MIN = 0.01          # Minimum stability (days)
D_MIN = 1.0           # Minimum difficulty
D_MAX = 10.0          # Maximum difficulty
MAXIMUM_INTERVAL = 36500  # Days


# ---- Same-day Steps ----
# Low grades on new or same-day cards are re-shown after a short delay
# instead of a whole-day interval.

LEARNING_STEPS = {
    Grade.AGAIN: timedelta(minutes=1),
    Grade.HARD: timedelta(minutes=6),
    Grade.GOOD: timedelta(minutes=10),
}
RELEARNING_STEP = timedelta(minutes=10)


# ---- Legacy Records ----
# Records saved before stability was tracked start from these values.

LEGACY_STABILITY = 3.0
LEGACY_DIFFICULTY = 5.0


# ---- Retention ----

DEFAULT_REQUESTED_RETENTION = 0.9
