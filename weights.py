import math
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any, Iterator

from errors import ConfigurationError
from metrics import Metric, METRICS, METRICS_BY_NAME

# the only reward: a weight that must not be positive
REWARD_METRICS = {'roll_in'}


class PenaltyWeights(Mapping):
    '''
    PenaltyWeights is an immutable linear combination of every penalty metric. It is the
    objective of the optimizer, summarizing the discomfort of typing on a keyboard layout.

    The optimizer will MINIMIZE the weighted sum. So think of it as cost or effort function.
    '''

    def __init__(self, weights: Mapping[Metric | str, Any]):
        resolved: dict[Metric, float] = {}
        for metric_or_name, weight in weights.items():
            if isinstance(metric_or_name, Metric):
                metric = metric_or_name
            elif metric_or_name in METRICS_BY_NAME:
                metric = METRICS_BY_NAME[metric_or_name]
            else:
                raise ConfigurationError(f"Unknown penalty '{metric_or_name}', expected one of: {', '.join(METRICS_BY_NAME)}")

            if isinstance(weight, bool) or not isinstance(weight, (int, float)):
                raise ConfigurationError(f"Weight of {metric.name} must be a number, got {weight!r}")
            weight = float(weight)
            if not math.isfinite(weight):
                raise ConfigurationError(f"Weight of {metric.name} must be finite, got {weight}")
            if metric.name in REWARD_METRICS:
                if weight > 0:
                    raise ConfigurationError(f"Weight of {metric.name} is a reward and must be <= 0, got {weight}")
            elif weight < 0:
                raise ConfigurationError(f"Weight of {metric.name} must be >= 0, got {weight}")
            resolved[metric] = weight

        missing = [metric.name for metric in METRICS if metric not in resolved]
        if missing:
            raise ConfigurationError(f"Missing weights for: {', '.join(missing)}")

        # keep METRICS order
        self._weights = {metric: resolved[metric] for metric in METRICS}

    def __getitem__(self, metric: Metric | str) -> float:
        if isinstance(metric, str):
            metric = METRICS_BY_NAME[metric]
        return self._weights[metric]

    def __iter__(self) -> Iterator[Metric]:
        return iter(self._weights)

    def __len__(self) -> int:
        return len(self._weights)

    def __str__(self):
        formatted_weights = {
            metric: f"{abs(weight):.2f}".rstrip("0").rstrip(".") for metric, weight in self._weights.items() if weight
        }
        formatted_signs = {metric: '-' if weight < 0 else '+' for metric, weight in self._weights.items()}

        return ' '.join([
            f"{formatted_signs[metric]} {weight}{metric.name}" for metric, weight in formatted_weights.items()
        ])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PenaltyWeights):
            return NotImplemented
        return self._weights == other._weights

    def __hash__(self):
        return hash(tuple((metric.name, weight) for metric, weight in self._weights.items()))

    def __repr__(self):
        return f"PenaltyWeights({self})"

    def by_name(self) -> dict[str, float]:
        return {metric.name: weight for metric, weight in self._weights.items()}

    def replace(self, **overrides: float) -> 'PenaltyWeights':
        '''a copy with some weights replaced, e.g. weights.replace(sfb=8.0)'''
        return PenaltyWeights({**self.by_name(), **overrides})

    @classmethod
    def from_dict(cls, mapping: Mapping[str, Any], base: 'PenaltyWeights | None' = None) -> 'PenaltyWeights':
        '''
        Weights from a (possibly partial) mapping of penalty names, merged over `base`.
        Without a base, missing penalties are an error.
        '''
        if base is None:
            return cls(dict(mapping))
        return base.replace(**mapping)

    @classmethod
    def from_formula(cls, formula: str, base: 'PenaltyWeights | None' = None) -> 'PenaltyWeights':
        '''
        Create PenaltyWeights from a formula string.

        The formula is a linear combination of penalties:
        [+|-][weight_1]<penalty_name_1> [+|- [weight_2]<penalty_name_2> ...]

        weight_i is a float.
        penalty_name_i is the name of a metric in the METRICS list.

        Penalties absent from the formula keep their weight in `base`, or weigh 0 without a base.

        Examples:
        10long_jump + 5sfb - 0.5roll_in
        base + sfb
        '''
        metrics = {}
        space_pattern = re.compile(r'\s+')
        sign_pattern = re.compile(r'[+-]')
        float_pattern = re.compile(r'(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?')
        metric_names = sorted([metric.name for metric in METRICS], key=lambda name: -len(name))

        class ParserState(Enum):
            START = 0
            SIGN = 1
            WEIGHT = 2
            METRIC = 3

        def parse_error_message(error: str, i: int, formula: str, state: ParserState) -> str:
            LINE_LEN = 70
            if len(formula) > LINE_LEN:
                start = max(0, i - LINE_LEN//2)
                end = min(len(formula), start + LINE_LEN)
                formula = formula[start:end]
                i -= start

            expected = {
                ParserState.START: "sign, weight, or penalty name",
                ParserState.SIGN: "sign +|-",
                ParserState.WEIGHT: "weight (float) or penalty name",
                ParserState.METRIC: "penalty name",
            }

            return "\n".join([
                f"{error}, at position {i}: expected {expected[state]}" if error else f"at position {i}: expected {expected[state]}",
                "",
                f"\t{formula}",
                f"\t{'-' * i}^",
                ""
            ])

        state = ParserState.START

        sign = 1
        weight = 1.0
        i = 0
        while i < len(formula):
            match = space_pattern.match(formula, i)
            if match:
                i = match.end()
                continue

            match = sign_pattern.match(formula, i)
            if match:
                if state == ParserState.START or state == ParserState.SIGN:
                    state = ParserState.WEIGHT
                else:
                    raise ConfigurationError(parse_error_message('', i, formula, state))
                sign = 1 if match.group() == '+' else -1
                i = match.end()
                continue

            match = float_pattern.match(formula, i)
            if match:
                if state in (ParserState.START, ParserState.WEIGHT):
                    state = ParserState.METRIC
                else:
                    raise ConfigurationError(parse_error_message('', i, formula, state))
                weight = float(match.group())
                i = match.end()
                continue

            for metric_name in metric_names:
                if formula.startswith(metric_name, i):
                    break
            else:
                raise ConfigurationError(parse_error_message("Invalid penalty name", i, formula, state))

            if state not in (ParserState.START, ParserState.WEIGHT, ParserState.METRIC):
                raise ConfigurationError(parse_error_message('', i, formula, state))
            i += len(metric_name)
            state = ParserState.SIGN

            if metric_name in metrics:
                raise ConfigurationError(parse_error_message(f"{metric_name} appears multiple times in the formula", i, formula, state))

            metrics[metric_name] = sign * weight
            sign = 1
            weight = 1.0

        if state == ParserState.WEIGHT or state == ParserState.METRIC:
            raise ConfigurationError(parse_error_message("Incomplete formula", i, formula, state))

        if base is None:
            base = cls({metric: 0.0 for metric in METRICS})
        return base.replace(**metrics)


DEFAULT_WEIGHTS = PenaltyWeights({
    'base': 1.0,
    'sfb': 5.0,
    'sfb_centre': 5.0,
    'long_jump': 10.0,
    'long_jump_adj': 8.0,
    'long_jump_hand': 1.0,
    'twist': 10.0,
    'roll_reversal': 10.0,
    'same_hand': 0.5,
    'alternate': 0.5,
    'roll_out': 0.5,
    'roll_in': -0.5,
})
