import logging

from layout import KeyboardLayout
from model import CostModel
from solvers import helper

logger = logging.getLogger(__name__)

# relative improvement below which a swap is not worth taking
TOLERANCE = 1e-9


def refine(model: CostModel, layout: KeyboardLayout, max_steps: int | None = None) -> tuple[KeyboardLayout, float]:
    '''
    optimize the layout using a steepest hill climbing algorithm: checks all possible swaps, and takes the best swap that improves the cost,
    then start over checking all possible swaps again, until no more swaps improve the cost

    returns a refined copy of the layout and its cost, the layout given is not modified
    '''
    refined = layout.copy()
    cost = model.cost(refined)
    pairs = helper.swap_position_pairs(len(refined))

    step = 0
    while max_steps is None or step < max_steps:
        best_delta = 0.0
        best_swap = None
        for i, j in pairs:
            delta = model.delta_cost(refined, i, j)
            if delta < best_delta:
                best_delta = delta
                best_swap = (i, j)

        if best_swap is None or -best_delta <= TOLERANCE * max(1.0, abs(cost)):
            break

        refined.swap_positions(*best_swap)
        cost += best_delta
        step += 1
        logger.debug(f"step {step}: swap {refined.char_at(best_swap[0])}<->{refined.char_at(best_swap[1])}, cost {cost:.3f}")

    logger.info(f"refined {layout.name} in {step} swaps")
    return refined, model.cost(refined)
