from dataclasses import dataclass, field
from typing import Callable

from corpus import NgramType
from hardware import (
    FingerType,
    Position,
    any_centre,
    is_row_jump,
    same_finger,
    same_hand,
)


@dataclass(frozen=True)
class Metric:
    """
    A single penalty rule defined over POSITIONS.
    """
    name: str
    description: str
    ngramType: NgramType

    # for a monogram, single argument is a position
    # for a bigram, two arguments are positions, and so on up to quadgrams
    # the function should return a float that is the value of the metric for the ngram given
    function: Callable[..., float] = field(hash=False, compare=False)

    @property
    def order(self) -> int:
        return self.ngramType.order


PINKY = FingerType.PINKY
RING = FingerType.RING
MIDDLE = FingerType.MIDDLE
INDEX = FingerType.INDEX

# (from, to) finger types of a roll on one hand
ROLL_OUT = {(RING, PINKY), (MIDDLE, RING), (INDEX, RING), (INDEX, MIDDLE)}
ROLL_IN = {(b, a) for a, b in ROLL_OUT}

# consecutive fingers for the long jump, middle-index is excluded
LONG_JUMP_ADJ = {frozenset((PINKY, RING)), frozenset((RING, MIDDLE))}


# Monogram metrics
def base(a):
    return a.effort


# Bigram metrics
# single finger bigram
def sfb(a, b):
    return same_finger(a, b) and a != b

def sfb_centre(a, b):
    return sfb(a, b) and any_centre(a, b)

def long_jump(a, b):
    return same_finger(a, b) and is_row_jump(a, b)

def long_jump_adj(a, b):
    return (
        same_hand(a, b) and is_row_jump(a, b) and
        frozenset((a.finger_type, b.finger_type)) in LONG_JUMP_ADJ
    )

def long_jump_hand(a, b):
    return same_hand(a, b) and is_row_jump(a, b)

def twist(a, b):
    '''
    pinky reaching above the ring finger, e.g. QA/AQ, PL/LP, ZX/XZ on qwerty
    '''
    if not same_hand(a, b):
        return False
    if a.finger_type == PINKY and b.finger_type == RING:
        pinky, ring = a, b
    elif a.finger_type == RING and b.finger_type == PINKY:
        pinky, ring = b, a
    else:
        return False
    return pinky.row.value == ring.row.value - 1

def roll_out(a, b):
    return same_hand(a, b) and (a.finger_type, b.finger_type) in ROLL_OUT

def roll_in(a, b):
    return same_hand(a, b) and (a.finger_type, b.finger_type) in ROLL_IN


# Trigram metrics
def roll_reversal(a, b, c):
    return (
        same_hand(a, b) and same_hand(b, c) and
        (a.finger_type, b.finger_type, c.finger_type) == (RING, PINKY, MIDDLE)
    )

def alternate(a, b, c):
    return a.hand != b.hand and b.hand != c.hand


# Quadgram metrics
def same_hand_4(a, b, c, d):
    return same_hand(a, b) and same_hand(b, c) and same_hand(c, d)


METRICS = [
    Metric(name="base", description="intrinsic key effort", ngramType=NgramType.MONOGRAM, function=base),
    Metric(name="sfb", description="same finger, different keys", ngramType=NgramType.BIGRAM, function=sfb),
    Metric(name="sfb_centre", description="same finger bigram touching a centre column", ngramType=NgramType.BIGRAM, function=sfb_centre),
    Metric(name="long_jump", description="same finger jumping top to bottom row", ngramType=NgramType.BIGRAM, function=long_jump),
    Metric(name="long_jump_adj", description="pinky-ring or ring-middle jumping top to bottom row", ngramType=NgramType.BIGRAM, function=long_jump_adj),
    Metric(name="long_jump_hand", description="same hand jumping top to bottom row", ngramType=NgramType.BIGRAM, function=long_jump_hand),
    Metric(name="twist", description="pinky reaching above the ring finger", ngramType=NgramType.BIGRAM, function=twist),
    Metric(name="roll_reversal", description="ring, pinky then middle on one hand", ngramType=NgramType.TRIGRAM, function=roll_reversal),
    Metric(name="same_hand", description="four keys on the same hand", ngramType=NgramType.QUADGRAM, function=same_hand_4),
    Metric(name="alternate", description="three keys alternating hands", ngramType=NgramType.TRIGRAM, function=alternate),
    Metric(name="roll_out", description="roll towards the pinky", ngramType=NgramType.BIGRAM, function=roll_out),
    Metric(name="roll_in", description="roll towards the index", ngramType=NgramType.BIGRAM, function=roll_in),
]

METRICS_BY_NAME = {metric.name: metric for metric in METRICS}

# assert that the metric names are all unique
assert len(METRICS) == len(METRICS_BY_NAME), "Metric names must be unique"


if __name__ == "__main__":
    for metric in METRICS:
        print(f"{metric.name:16s} order {metric.order}  {metric.description}")
