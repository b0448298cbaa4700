import logging
import pytest
import sys
from pathlib import Path
from dataclasses import dataclass


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from corpus import CorpusStats
from hardware import KeyboardHardware
from layout import KeyboardLayout
from model import CostModel
from optim import MultiStart
from solvers.annealing import AnnealingSchedule, TerminationReason
from weights import DEFAULT_WEIGHTS

TEXT = """the quick brown fox jumps over the lazy dog. pack my box with five dozen liquor jugs.
how vexingly quick daft zebras jump, the five boxing wizards jump quickly."""

FAST = AnnealingSchedule(temperature_start=5.0, temperature_floor=0.05, cooling_factor=0.98)


@dataclass(slots=True, frozen=True)
class Scenario:
    """A hardware and a starting layout to improve with a few seeds."""

    hardware: str
    layout: str | None
    seeds: tuple[int, ...]

    @property
    def name(self) -> str:
        return f"{self.hardware}_{self.layout}_{len(self.seeds)}"


logger = logging.getLogger(__name__)


SCENARIOS = [
    Scenario("ansi", "qwerty", (1, 2, 3)),
    Scenario("ansi", None, (4, 5, 6, 7)),
    Scenario("ansi_26", "qwerty_26", (8, 9)),
]


@pytest.mark.parametrize("scenario", SCENARIOS, ids=lambda sc: sc.name)
def test_multi_start_keeps_the_best(scenario: Scenario) -> None:
    hardware = KeyboardHardware.from_name(scenario.hardware)
    layout = KeyboardLayout.from_name(scenario.layout, hardware) if scenario.layout else None
    alphabet = KeyboardLayout.from_name('qwerty' if scenario.hardware == 'ansi' else 'qwerty_26', hardware).chars
    model = CostModel(hardware, DEFAULT_WEIGHTS, CorpusStats.from_text(TEXT, alphabet))

    multi = MultiStart(model, FAST, progress=False).run(scenario.seeds, layout=layout, alphabet=alphabet)

    assert len(multi.results) == len(scenario.seeds)
    assert [result.seed for result in multi.results] == list(scenario.seeds)
    assert multi.best.best_cost == min(result.best_cost for result in multi.results)
    assert multi.best.best_layout.is_bijection()
    if layout is not None:
        assert multi.best.best_cost <= model.cost(layout)
    logger.info(f"{scenario.name}: best {multi.best.best_cost:.2f} from seed {multi.best.seed}")


def test_ties_go_to_the_earliest_seed() -> None:
    layout = KeyboardLayout.from_name('qwerty')
    model = CostModel(layout.hardware, DEFAULT_WEIGHTS, CorpusStats.from_text(TEXT, layout.chars))
    schedule = AnnealingSchedule(max_iterations=0)

    multi = MultiStart(model, schedule, progress=False).run([5, 3, 9], layout=layout)
    assert multi.best.seed == 5
    assert all(result.termination == TerminationReason.MAX_ITERATIONS for result in multi.results)


def test_runs_are_deterministic() -> None:
    layout = KeyboardLayout.from_name('qwerty')
    model = CostModel(layout.hardware, DEFAULT_WEIGHTS, CorpusStats.from_text(TEXT, layout.chars))

    a = MultiStart(model, FAST, progress=False).run([11, 12], alphabet=layout.chars)
    b = MultiStart(model, FAST, progress=False).run([11, 12], alphabet=layout.chars)
    assert [r.best_layout for r in a.results] == [r.best_layout for r in b.results]
    assert a.best.seed == b.best.seed


def test_process_pool_matches_in_process() -> None:
    layout = KeyboardLayout.from_name('qwerty')
    model = CostModel(layout.hardware, DEFAULT_WEIGHTS, CorpusStats.from_text(TEXT, layout.chars))
    seeds = [21, 22, 23]

    pooled = MultiStart(model, FAST, processes=2, progress=False).run(seeds, alphabet=layout.chars)
    local = MultiStart(model, FAST, processes=1, progress=False).run(seeds, alphabet=layout.chars)

    assert [r.seed for r in pooled.results] == seeds
    assert [r.best_layout for r in pooled.results] == [r.best_layout for r in local.results]
    assert [r.best_cost for r in pooled.results] == pytest.approx([r.best_cost for r in local.results])
    assert pooled.best.seed == local.best.seed


def test_logs_are_saved(tmp_path) -> None:
    layout = KeyboardLayout.from_name('qwerty')
    model = CostModel(layout.hardware, DEFAULT_WEIGHTS, CorpusStats.from_text(TEXT, layout.chars))

    MultiStart(model, AnnealingSchedule(max_iterations=10), logs_dir=tmp_path, run_name='t', progress=False).run([1, 2], layout=layout)

    events = (tmp_path / 't_events.tsv').read_text().splitlines()
    runs = (tmp_path / 't_runs.tsv').read_text().splitlines()
    assert events[0].split('\t')[0] == 'run_name'
    assert len(events) == 1 + 2 * 10
    assert len(runs) == 1 + 2
    assert runs[1].split('\t')[6] == 'max_iterations'


def test_invalid_arguments() -> None:
    layout = KeyboardLayout.from_name('qwerty')
    model = CostModel(layout.hardware, DEFAULT_WEIGHTS, CorpusStats.from_text(TEXT, layout.chars))
    with pytest.raises(ValueError):
        MultiStart(model, processes=0)
    with pytest.raises(ValueError):
        MultiStart(model, progress=False).run([])
