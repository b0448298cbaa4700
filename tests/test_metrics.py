import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from hardware import KeyboardHardware
from layout import KeyboardLayout
from metrics import METRICS, METRICS_BY_NAME

QWERTY = KeyboardLayout.from_name('qwerty', KeyboardHardware.from_name('ansi'))


def value(metric_name: str, ngram: str) -> float:
    metric = METRICS_BY_NAME[metric_name]
    assert len(ngram) == metric.order
    return float(metric.function(*(QWERTY.position_of(c) for c in ngram)))


def test_metric_names_unique():
    assert len(METRICS) == len(METRICS_BY_NAME) == 12


@pytest.mark.parametrize("metric_name, ngram, expected", [
    # base effort
    ("base", "f", 0.0),
    ("base", "a", 0.5),
    ("base", "q", 3.0),
    ("base", "g", 1.0),
    # same finger on different keys, the same key twice is not a sfb
    ("sfb", "fr", 1.0),
    ("sfb", "ff", 0.0),
    ("sfb", "fj", 0.0),
    ("sfb", "ed", 1.0),
    ("sfb_centre", "fg", 1.0),
    ("sfb_centre", "ed", 0.0),
    # top to bottom row on the same finger
    ("long_jump", "ec", 1.0),
    ("long_jump", "ed", 0.0),
    ("long_jump", "ex", 0.0),
    # consecutive fingers, middle-index excluded
    ("long_jump_adj", "wc", 1.0),
    ("long_jump_adj", "qx", 1.0),
    ("long_jump_adj", "ev", 0.0),
    ("long_jump_adj", "ec", 0.0),
    ("long_jump_hand", "ev", 1.0),
    ("long_jump_hand", "en", 0.0),
    # pinky above the ring finger, both orders
    ("twist", "qs", 1.0),
    ("twist", "sq", 1.0),
    ("twist", "zx", 0.0),
    ("twist", "ax", 1.0),
    ("twist", "xa", 1.0),
    ("twist", "wa", 0.0),
    ("twist", "lp", 1.0),
    ("twist", "pl", 1.0),
    # ring, pinky then middle
    ("roll_reversal", "sad", 1.0),
    ("roll_reversal", "das", 0.0),
    ("roll_reversal", "sak", 0.0),
    ("same_hand", "sdfg", 1.0),
    ("same_hand", "sdfj", 0.0),
    ("alternate", "fjf", 1.0),
    ("alternate", "jfj", 1.0),
    ("alternate", "ffj", 0.0),
    ("roll_out", "sa", 1.0),
    ("roll_out", "fs", 1.0),
    ("roll_out", "as", 0.0),
    ("roll_out", "fd", 1.0),
    ("roll_in", "as", 1.0),
    ("roll_in", "sd", 1.0),
    ("roll_in", "df", 1.0),
    ("roll_in", "sa", 0.0),
    ("roll_in", "aj", 0.0),
    # the right hand mirrors the left
    ("roll_in", ";l", 1.0),
    ("roll_out", "l;", 1.0),
])
def test_metric_triggers(metric_name: str, ngram: str, expected: float) -> None:
    assert value(metric_name, ngram) == expected


def test_roll_in_and_out_are_exclusive():
    for a in 'asdfg':
        for b in 'asdfg':
            assert not (value('roll_in', a + b) and value('roll_out', a + b))
