import math
import sys
import threading
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from corpus import CorpusStats
from errors import ConfigurationError
from hardware import Row
from keebs.ansi import standard_hardware
from layout import KeyboardLayout
from logger import RunLogger
from model import CostModel
from solvers.annealing import (
    Annealer,
    AnnealerStatus,
    AnnealingSchedule,
    TerminationReason,
    calibrate_schedule,
)
from weights import DEFAULT_WEIGHTS

FOX = "THE QUICK BROWN FOX JUMPS OVER THE LAZY DOG"
LETTERS = 'abcdefghijklmnopqrstuvwxyz'

SCHEDULE = AnnealingSchedule(temperature_start=10.0, temperature_floor=0.01, cooling_factor=0.995)


@pytest.fixture(scope="module")
def qwerty():
    return KeyboardLayout.from_name('qwerty_26')


@pytest.fixture(scope="module")
def model(qwerty):
    return CostModel(qwerty.hardware, DEFAULT_WEIGHTS, CorpusStats.from_text(FOX, LETTERS))


def test_anneal_from_qwerty(model, qwerty):
    result = Annealer(model, SCHEDULE).run(layout=qwerty, seed=42)

    assert result.termination == TerminationReason.TEMPERATURE_FLOOR
    assert result.best_cost <= result.initial_cost
    assert result.initial_cost == pytest.approx(model.cost(qwerty))
    assert result.best_cost == pytest.approx(model.cost(result.best_layout))
    assert result.final_temperature < SCHEDULE.temperature_floor
    assert result.best_layout.is_bijection()
    assert set(result.best_layout.chars) == set(LETTERS)
    # the seed layout is copied, never modified
    assert qwerty.key_string() == 'qwertyuiopasdfghjklzxcvbnm'


def test_short_corpus_from_a_random_layout(qwerty):
    model = CostModel(qwerty.hardware, DEFAULT_WEIGHTS, CorpusStats.from_text("THE QUICK BROWN FOX", LETTERS))
    result = Annealer(model, SCHEDULE).run(alphabet=LETTERS, seed=42)

    assert result.termination == TerminationReason.TEMPERATURE_FLOOR
    assert math.isfinite(result.best_cost)
    assert result.best_cost >= 0
    assert result.best_cost <= result.initial_cost
    assert result.best_layout.is_bijection()
    assert result.seed == 42


def test_same_seed_same_result(model):
    a = Annealer(model, SCHEDULE).run(seed=7)
    b = Annealer(model, SCHEDULE).run(seed=7)
    assert a.best_layout == b.best_layout
    assert a.best_cost == b.best_cost
    assert a.iterations == b.iterations
    assert a.accepted == b.accepted


def test_best_cost_never_increases(model):
    run_logger = RunLogger('test')
    result = Annealer(model, SCHEDULE, run_logger=run_logger).run(seed=3)

    best_costs = [event[4] for event in run_logger.events]
    assert len(best_costs) == result.iterations
    assert all(b <= a for a, b in zip(best_costs, best_costs[1:]))
    assert best_costs[-1] == pytest.approx(result.best_cost)
    assert all(event[4] <= event[3] + 1e-9 for event in run_logger.events)

    assert len(run_logger.runs) == 1
    assert run_logger.runs[0][5] == 'temperature_floor'


def test_alphabet_larger_than_keyboard():
    hardware = standard_hardware('ansi_24', cols_at_row={
        Row.TOP: range(10),
        Row.HOME: range(9),
        Row.BOTTOM: range(5),
    })
    model = CostModel(hardware, DEFAULT_WEIGHTS, CorpusStats.from_text(FOX, LETTERS))
    with pytest.raises(ConfigurationError):
        Annealer(model, SCHEDULE).run(alphabet=LETTERS, seed=1)


def test_cancel_returns_best_so_far(model, qwerty):
    cancel = threading.Event()
    cancel.set()
    result = Annealer(model, SCHEDULE).run(layout=qwerty, seed=1, cancel=cancel)
    assert result.termination == TerminationReason.CANCELLED
    assert result.iterations == 0
    assert result.best_layout == qwerty


def test_max_iterations(model):
    schedule = AnnealingSchedule(max_iterations=25)
    result = Annealer(model, schedule).run(seed=1)
    assert result.termination == TerminationReason.MAX_ITERATIONS
    assert result.iterations == 25


def test_stagnation(model):
    # cold enough that uphill moves are practically never taken
    schedule = AnnealingSchedule(temperature_start=1e-6, temperature_floor=1e-9, cooling_factor=0.9999, stagnation_limit=50)
    result = Annealer(model, schedule).run(seed=1)
    assert result.termination == TerminationReason.STAGNATION
    assert result.best_cost <= result.initial_cost


def test_multi_swap_moves(model):
    schedule = AnnealingSchedule(max_swaps=3, max_iterations=200)
    result = Annealer(model, schedule).run(seed=5)
    assert result.best_layout.is_bijection()
    assert result.best_cost == pytest.approx(model.cost(result.best_layout))
    assert result.final_cost >= result.best_cost - 1e-9


def test_step_by_step(model):
    annealer = Annealer(model, SCHEDULE)
    with pytest.raises(RuntimeError):
        annealer.step()

    state = annealer.start(seed=2)
    assert annealer.status == AnnealerStatus.RUNNING
    for _ in range(10):
        annealer.step()
    assert state.iteration == 10
    assert state.temperature == pytest.approx(10.0 * 0.995 ** 10)
    assert state.cost == pytest.approx(model.cost(state.layout))

    result = annealer.finish(TerminationReason.CANCELLED)
    assert annealer.status == AnnealerStatus.TERMINATED
    assert result.iterations == 10
    with pytest.raises(RuntimeError):
        annealer.start(seed=2)


@pytest.mark.parametrize("settings", [
    {'temperature_start': 0.0},
    {'temperature_start': float('nan')},
    {'temperature_floor': 20.0},
    {'temperature_floor': 0.0},
    {'cooling_factor': 1.0},
    {'cooling_factor': 0.0},
    {'steps_per_temperature': 0},
    {'max_iterations': -1},
    {'stagnation_limit': 0},
    {'max_swaps': 0},
    {'max_swaps': True},
])
def test_invalid_schedule(settings):
    with pytest.raises(ConfigurationError):
        AnnealingSchedule(**settings)


def test_schedule_from_dict():
    schedule = AnnealingSchedule.from_dict({'cooling_factor': 0.9}, base=SCHEDULE)
    assert schedule.cooling_factor == 0.9
    assert schedule.temperature_start == 10.0
    with pytest.raises(ConfigurationError):
        AnnealingSchedule.from_dict({'coolness': 0.9})


def test_calibrate_schedule(model, qwerty):
    schedule = calibrate_schedule(model, qwerty, SCHEDULE)
    assert schedule.temperature_floor < schedule.temperature_start
    assert schedule.cooling_factor == SCHEDULE.cooling_factor

    with pytest.raises(ConfigurationError):
        calibrate_schedule(model, qwerty, p0=0.01, pf=0.5)
