import math
from itertools import combinations
from typing import Any

import numpy as np

from layout import KeyboardLayout
from model import CostModel


def random_swap_indices(rng: np.random.Generator, n: int) -> tuple[int, int]:
    """Pick two distinct positions uniformly at random."""
    i = int(rng.integers(n))
    j = int(rng.integers(n - 1))
    if j >= i:
        j += 1
    return i, j


def accept_move(delta: float, temperature: float, rng: np.random.Generator) -> bool:
    """Metropolis acceptance rule, downhill moves never draw from the generator."""
    if delta <= 0:
        return True
    prob = math.exp(-delta / temperature)
    return bool(rng.random() < prob)


def swap_position_pairs(n: int) -> tuple[tuple[int, int], ...]:
    return tuple(combinations(range(n), 2))


def swap_deltas(model: CostModel, layout: KeyboardLayout) -> dict[tuple[int, int], float]:
    '''the cost delta of every single swap of the layout'''
    return {
        (i, j): model.delta_cost(layout, i, j)
        for i, j in swap_position_pairs(len(layout))
    }


def report_progress(progress_queue: Any) -> None:
    if progress_queue is not None:
        progress_queue.put(1)

