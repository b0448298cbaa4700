"""Text formatting of layouts, annealing results and cost breakdowns."""

from typing import Any, Optional, Sequence

from tabulate import tabulate

from layout import KeyboardLayout
from metrics import Metric
from model import CostModel
from optim import MultiStartResult
from solvers.annealing import AnnealingResult


def format_table(
    rows: list[list[Any]],
    headers: Optional[list[str]] = None,
    tablefmt: str = "simple",
    floatfmt: str = ".3f",
    disable_numparse: bool = False,
) -> str:
    """Rows of values as a tabulate table. Floats use `floatfmt` unless `disable_numparse` keeps cells as given."""
    kwargs = {
        "tablefmt": tablefmt,
        "floatfmt": floatfmt,
        "disable_numparse": disable_numparse,
    }
    if headers is not None:
        kwargs["headers"] = headers

    return tabulate(rows, **kwargs)


def format_layout_display(layout: KeyboardLayout) -> str:
    """Format a keyboard layout with its hardware fingers side by side."""
    header = [layout.name, layout.hardware.name]
    layout_str = str(layout)
    hardware_str = layout.hardware.str(show_finger_numbers=True)

    # Tabulate removes leading spaces, so add a leading character to preserve formatting
    LEAD_SPACE = "| "
    rows = zip(
        [LEAD_SPACE + line for line in layout_str.split('\n')],
        [LEAD_SPACE + line for line in hardware_str.split('\n')]
    )

    return format_table([list(row) for row in rows], headers=header, tablefmt="simple", disable_numparse=True)


def format_ngrams(top: Sequence[tuple[str, float]], sep: str = ", ") -> str:
    return sep.join(f"{ngram}: {value:g}" for ngram, value in top)


def format_breakdown(
    model: CostModel,
    layouts: Sequence[KeyboardLayout],
    show_top_ngrams: bool = False,
    top_n: int = 5,
) -> str:
    """Per-penalty contributions of each layout, with total and per-char cost.

    With a single layout and show_top_ngrams, the n-grams that weigh the most
    on each penalty are listed in an extra column.
    """
    show_top = show_top_ngrams and len(layouts) == 1
    contributions = {layout: model.contributions(layout) for layout in layouts}

    headers = ["penalty", "weight"] + [layout.name for layout in layouts]
    if show_top:
        headers.append("top ngrams")

    rows = []
    metric: Metric
    for metric, weight in model.weights.items():
        row = [metric.name, weight] + [contributions[layout][metric] for layout in layouts]
        if show_top:
            row.append(format_ngrams(model.top_ngrams(layouts[0], metric, top_n)))
        rows.append(row)

    rows.append(["total", ""] + [model.cost(layout) for layout in layouts] + ([""] if show_top else []))
    rows.append(["per char", ""] + [model.cost_per_char(layout) for layout in layouts] + ([""] if show_top else []))

    return format_table(rows, headers=headers)


def format_result(result: AnnealingResult) -> str:
    rows = [
        ["seed", result.seed],
        ["initial cost", f"{result.initial_cost:.3f}"],
        ["best cost", f"{result.best_cost:.3f}"],
        ["iterations", result.iterations],
        ["accepted", f"{result.accepted} ({result.accepted_uphill} uphill)"],
        ["final temperature", f"{result.final_temperature:.4g}"],
        ["termination", result.termination.value],
    ]
    return format_table(rows, tablefmt="plain", disable_numparse=True)


def format_runs(multi: MultiStartResult) -> str:
    """One line per annealing run, best first."""
    rows = [
        [result.seed, result.initial_cost, result.best_cost, result.iterations, result.termination.value]
        for result in sorted(multi.results, key=lambda r: r.best_cost)
    ]
    return format_table(rows, headers=["seed", "initial", "best", "iterations", "termination"])
