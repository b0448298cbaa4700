'''
Simulated annealing on keyboard layouts using random swap moves.

The annealer owns a single "current" layout, mutated in place, and a separately
owned copy of the best layout found so far. Cooling is geometric: the temperature
is multiplied by `cooling_factor` every `steps_per_temperature` iterations.
'''

import dataclasses
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence

import numpy as np

from errors import ConfigurationError, InputError
from layout import KeyboardLayout
from logger import RunLogger
from model import CostModel
from solvers import helper
from solvers.steepesthill import refine

logger = logging.getLogger(__name__)


class CancelSignal(Protocol):
    def is_set(self) -> bool: ...


class AnnealerStatus(Enum):
    INITIALIZING = 0
    RUNNING = 1
    TERMINATED = 2


class TerminationReason(Enum):
    TEMPERATURE_FLOOR = 'temperature_floor'
    MAX_ITERATIONS = 'max_iterations'
    STAGNATION = 'stagnation'
    CANCELLED = 'cancelled'


@dataclass(frozen=True)
class AnnealingSchedule:
    # Temperature at the first iteration, and the temperature below which the run stops
    temperature_start: float = 10.0
    temperature_floor: float = 0.01

    # temperature *= cooling_factor every steps_per_temperature iterations
    cooling_factor: float = 0.995
    steps_per_temperature: int = 1

    # optional cutoffs
    max_iterations: int | None = None
    stagnation_limit: int | None = None

    # each move applies between 1 and max_swaps random swaps
    max_swaps: int = 1

    def __post_init__(self):
        for name in ('temperature_start', 'temperature_floor', 'cooling_factor'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ConfigurationError(f"{name} must be a finite number, got {value!r}")
        if self.temperature_start <= 0:
            raise ConfigurationError(f"temperature_start must be > 0, got {self.temperature_start}")
        if not 0 < self.temperature_floor <= self.temperature_start:
            raise ConfigurationError(
                f"temperature_floor must be in (0, temperature_start], got {self.temperature_floor}"
            )
        if not 0 < self.cooling_factor < 1:
            raise ConfigurationError(f"cooling_factor must be in (0, 1), got {self.cooling_factor}")

        for name, minimum in (
            ('steps_per_temperature', 1),
            ('max_iterations', 0),
            ('stagnation_limit', 1),
            ('max_swaps', 1),
        ):
            value = getattr(self, name)
            if value is None and name in ('max_iterations', 'stagnation_limit'):
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
                raise ConfigurationError(f"{name} must be an integer >= {minimum}, got {value!r}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base: 'AnnealingSchedule | None' = None) -> 'AnnealingSchedule':
        fields = {field.name for field in dataclasses.fields(cls)}
        unknown = set(data) - fields
        if unknown:
            raise ConfigurationError(f"Unknown schedule settings: {', '.join(sorted(unknown))}")
        return dataclasses.replace(base or cls(), **data)


@dataclass
class AnnealingState:
    layout: KeyboardLayout
    cost: float
    best_layout: KeyboardLayout
    best_cost: float
    temperature: float
    rng: np.random.Generator
    iteration: int = 0

    # iterations since the last accepted downhill move
    since_improvement: int = 0

    accepted: int = 0
    accepted_uphill: int = 0


@dataclass(frozen=True)
class AnnealingResult:
    """Summary of one annealing run."""

    best_layout: KeyboardLayout
    best_cost: float
    initial_cost: float
    final_cost: float
    iterations: int
    accepted: int
    accepted_uphill: int
    final_temperature: float
    termination: TerminationReason
    seed: int | None


class Annealer:
    """
    Simulated annealing on keyboard layouts using swap moves.

    Parameters
    ----------
    model : CostModel
        Pre-configured scoring model, shared read-only.
    schedule : AnnealingSchedule
        Cooling schedule and stopping criteria.
    run_logger : RunLogger | None
        Records every iteration and the run summary.
    """

    def __init__(self, model: CostModel, schedule: AnnealingSchedule | None = None, run_logger: RunLogger | None = None):
        self.model = model
        self.schedule = schedule or AnnealingSchedule()
        self.run_logger = run_logger
        self.status = AnnealerStatus.INITIALIZING
        self.state: AnnealingState | None = None
        self.seed: int | None = None
        self.initial_cost = 0.0

    def start(
        self,
        layout: KeyboardLayout | None = None,
        alphabet: Sequence[str] | None = None,
        seed: int | None = None,
    ) -> AnnealingState:
        '''
        Prepare a run from a seed layout (copied, never modified), or from a random
        permutation of the alphabet drawn with the run's own generator.
        '''
        if self.status != AnnealerStatus.INITIALIZING:
            raise RuntimeError(f"Annealer is {self.status.name.lower()}, create a new one for another run")

        rng = np.random.default_rng(seed)
        if layout is None:
            if alphabet is None:
                alphabet = self.model.stats.alphabet
            layout = KeyboardLayout.random(self.model.hardware, alphabet, rng)
        else:
            layout = layout.copy()

        cost = self.model.cost(layout)
        self.seed = seed
        self.initial_cost = cost
        self.state = AnnealingState(
            layout=layout,
            cost=cost,
            best_layout=layout.copy(),
            best_cost=cost,
            temperature=self.schedule.temperature_start,
            rng=rng,
        )
        if self.run_logger is not None:
            self.run_logger.start()
        self.status = AnnealerStatus.RUNNING
        return self.state

    def termination(self, cancel: CancelSignal | None = None) -> TerminationReason | None:
        '''the reason to stop before the next iteration, if any'''
        state = self.state
        schedule = self.schedule
        if cancel is not None and cancel.is_set():
            return TerminationReason.CANCELLED
        if state.temperature < schedule.temperature_floor:
            return TerminationReason.TEMPERATURE_FLOOR
        if schedule.max_iterations is not None and state.iteration >= schedule.max_iterations:
            return TerminationReason.MAX_ITERATIONS
        if schedule.stagnation_limit is not None and state.since_improvement >= schedule.stagnation_limit:
            return TerminationReason.STAGNATION
        return None

    def step(self) -> bool:
        '''
        One iteration: apply 1..max_swaps random swaps, keep them if the Metropolis
        criterion accepts the summed delta, undo them otherwise. Returns True if accepted.
        '''
        if self.status != AnnealerStatus.RUNNING:
            raise RuntimeError(f"Annealer is {self.status.name.lower()}, not running")

        state = self.state
        layout = state.layout
        rng = state.rng
        N = len(layout)

        n_swaps = 1 if self.schedule.max_swaps == 1 else int(rng.integers(1, self.schedule.max_swaps + 1))
        swaps = []
        delta = 0.0
        for _ in range(n_swaps):
            i, j = helper.random_swap_indices(rng, N)
            delta += self.model.delta_cost(layout, i, j)
            layout.swap_positions(i, j)
            swaps.append((i, j))

        accepted = helper.accept_move(delta, state.temperature, rng)
        if accepted:
            state.cost += delta
            state.accepted += 1
            if delta > 0:
                state.accepted_uphill += 1
        else:
            for i, j in reversed(swaps):
                layout.swap_positions(i, j)

        state.iteration += 1
        if accepted and delta < 0:
            state.since_improvement = 0
        else:
            state.since_improvement += 1

        if state.cost < state.best_cost:
            state.best_cost = state.cost
            state.best_layout = layout.copy()

        if self.run_logger is not None:
            self.run_logger.event(self.seed, state.iteration, state.temperature, state.cost, state.best_cost, tuple(swaps), accepted)

        if state.iteration % self.schedule.steps_per_temperature == 0:
            state.temperature *= self.schedule.cooling_factor

        return accepted

    def finish(self, reason: TerminationReason) -> AnnealingResult:
        state = self.state
        self.status = AnnealerStatus.TERMINATED

        # recompute from scratch, the running cost accumulates rounding
        best_cost = self.model.cost(state.best_layout)
        final_cost = self.model.cost(state.layout)

        logger.info(
            f"seed {self.seed}: {reason.value} after {state.iteration} iterations, "
            f"cost {self.initial_cost:.3f} -> {best_cost:.3f}"
        )
        if self.run_logger is not None:
            self.run_logger.run(self.seed, self.initial_cost, best_cost, state.iteration, state.accepted, reason.value)

        return AnnealingResult(
            best_layout=state.best_layout,
            best_cost=best_cost,
            initial_cost=self.initial_cost,
            final_cost=final_cost,
            iterations=state.iteration,
            accepted=state.accepted,
            accepted_uphill=state.accepted_uphill,
            final_temperature=state.temperature,
            termination=reason,
            seed=self.seed,
        )

    def run(
        self,
        layout: KeyboardLayout | None = None,
        alphabet: Sequence[str] | None = None,
        seed: int | None = None,
        cancel: CancelSignal | None = None,
        progress_queue: Any = None,
    ) -> AnnealingResult:
        '''
        Anneal until a stopping criterion is met and return the best layout found.
        '''
        self.start(layout, alphabet, seed)
        while True:
            reason = self.termination(cancel)
            if reason is not None:
                break
            self.step()
        helper.report_progress(progress_queue)
        return self.finish(reason)


def calibrate_schedule(
    model: CostModel,
    layout: KeyboardLayout,
    schedule: AnnealingSchedule | None = None,
    p0: float = 0.675,
    pf: float = 0.01,
) -> AnnealingSchedule:
    '''
    Derive the start and floor temperatures of the schedule from the cost landscape:
    at a local optimum reached from `layout`, take the typical uphill delta (75th percentile)
    and choose the temperatures that accept it with probability p0 at the start and pf at the end.
    '''
    if not (0 < pf < p0 < 1):
        raise ConfigurationError(f"Acceptance probabilities must satisfy 0 < pf < p0 < 1, got p0={p0}, pf={pf}")

    local_optimum, _ = refine(model, layout)
    uphill_deltas = sorted(delta for delta in helper.swap_deltas(model, local_optimum).values() if delta > 0)
    if not uphill_deltas:
        raise InputError("Cannot calibrate the temperature: no swap increases the cost")

    # find typical values for uphill deltas at the local optimum
    idx = int(0.75 * (len(uphill_deltas) - 1))
    Δ_typical = uphill_deltas[idx]

    # Compute starting + ending temperatures based on target accept probabilities
    T0 = -Δ_typical / math.log(p0)
    Tf = -Δ_typical / math.log(pf)

    logger.info(f"calibrated temperature {T0:.4f} -> {Tf:.4f} from typical uphill delta {Δ_typical:.4f}")
    return dataclasses.replace(schedule or AnnealingSchedule(), temperature_start=T0, temperature_floor=Tf)
