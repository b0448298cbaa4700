import itertools
import logging

import numpy as np
from numba import jit

from corpus import CorpusStats, NgramType, rows_containing
from errors import ConfigurationError, InputError
from hardware import KeyboardHardware
from layout import KeyboardLayout
from metrics import Metric, METRICS
from weights import PenaltyWeights

logger = logging.getLogger(__name__)


class CostModel:
    """
    Keyboard layout scoring model with pre-aggregated metrics and fast swap deltas.

    The cost of a layout is the sum, over every n-gram of the corpus, of its count times
    the weighted penalty of the positions its characters occupy.
    """

    def __init__(
        self,
        hardware: KeyboardHardware,
        weights: PenaltyWeights,
        stats: CorpusStats,
    ):
        if stats.is_empty():
            raise InputError(f"Corpus '{stats.corpus_name}' has no n-grams to score")

        self.hardware = hardware
        self.weights = weights
        self.stats = stats
        self.metrics = list(METRICS)

        N = len(hardware.positions)
        self.strides = {
            ngramType: np.array([N ** (ngramType.order - 1 - d) for d in range(ngramType.order)], dtype=np.int64)
            for ngramType in NgramType
        }

        self._metrics_for_all_position_ngrams()
        self._preaggregate_objective()
        logger.debug(f"{hardware.name}: pre-aggregated {len(self.metrics)} metrics over {N} positions")

        # layout chars -> aligned ngram tables
        self._aligned = {}

    def _metrics_for_all_position_ngrams(self):
        '''
        Pre-aggregate all metrics into position n-grams.
        M[metric] = np_array(shape=(N,)) for order 1 metrics
          M[metric][i] = metric.function(self.hardware.positions[i])
        M[metric] = np_array(shape=(N,N)) for order 2 metrics
          M[metric][i,j] = metric.function(self.hardware.positions[i], self.hardware.positions[j])
        and so on up to order 4.
        '''
        self.M = {}
        positions = self.hardware.positions
        N = len(positions)

        for metric in self.metrics:
            values = np.fromiter(
                (metric.function(*ngram) for ngram in itertools.product(positions, repeat=metric.order)),
                dtype=np.float64,
                count=N ** metric.order,
            )
            self.M[metric] = values.reshape((N,) * metric.order)

    def _preaggregate_objective(self):
        '''
        Pre-aggregate all metrics into a single tensor per ngram type.

        requires self.M to be computed first. V[ngramType] is the linear combination of
        every self.M[metric] of that order with the penalty weights, so that scoring a
        layout is a lookup of V at the positions of each ngram.
        '''
        N = len(self.hardware.positions)

        self.V = {
            ngramType: np.zeros((N,) * ngramType.order, dtype=np.float64)
            for ngramType in NgramType
        }

        for metric, weight in self.weights.items():
            self.V[metric.ngramType] += weight * self.M[metric]

        self.V_flat = {ngramType: V.ravel() for ngramType, V in self.V.items()}
        self.active = [ngramType for ngramType in NgramType if np.any(self.V[ngramType])]

    def _align(self, layout: KeyboardLayout) -> dict[NgramType, tuple[np.ndarray, np.ndarray, list[np.ndarray]]]:
        '''
        The stats ngram tables with char ids translated to the layout's char ids, and
        for each layout char id the rows that contain it.
        '''
        if layout.hardware != self.hardware:
            raise ConfigurationError(f"Layout hardware {layout.hardware.name} does not match model hardware {self.hardware.name}")

        aligned = self._aligned.get(layout.chars)
        if aligned is not None:
            return aligned

        missing = self.stats.chars_in_use() - set(layout.chars)
        if missing:
            raise ConfigurationError(
                f"Layout {layout.name} has no key for characters of the corpus: {' '.join(sorted(missing))}"
            )

        layout_id = {c: i for i, c in enumerate(layout.chars)}
        to_layout = np.array([layout_id.get(c, -1) for c in self.stats.alphabet], dtype=np.int64)

        aligned = {}
        for ngramType, (ngrams, counts) in self.stats.to_numpy().items():
            ngrams = to_layout[ngrams] if len(ngrams) else ngrams
            aligned[ngramType] = (ngrams, counts, rows_containing(ngrams, len(layout.chars)))
        self._aligned[layout.chars] = aligned
        return aligned

    def _position_index(self, layout: KeyboardLayout, ngramType: NgramType, ngrams: np.ndarray) -> np.ndarray:
        '''flat index into V[ngramType] of the positions of each ngram'''
        return (layout.pos_of_char[ngrams] * self.strides[ngramType]).sum(axis=1)

    def cost(self, layout: KeyboardLayout) -> float:
        '''
        Score the layout: total weighted penalty over the corpus, on raw counts.
        '''
        aligned = self._align(layout)
        total = 0.0
        for ngramType in self.active:
            ngrams, counts, _ = aligned[ngramType]
            if not len(counts):
                continue
            idx = self._position_index(layout, ngramType, ngrams)
            total += float(counts @ self.V_flat[ngramType][idx])
        return total

    def cost_per_char(self, layout: KeyboardLayout) -> float:
        '''cost divided by the number of characters of the corpus'''
        return self.cost(layout) / self.stats.total_chars

    def delta_cost(self, layout: KeyboardLayout, i: int, j: int) -> float:
        '''
        The change in cost from swapping the characters at positions i and j.
        A negative delta means the swapped layout is better (lower cost).

        Only the ngrams that contain one of the two characters are visited.
        '''
        if i == j:
            return 0.0

        aligned = self._align(layout)
        char_a = layout.char_at_pos[i]
        char_b = layout.char_at_pos[j]

        delta = 0.0
        for ngramType in self.active:
            ngrams, counts, rows = aligned[ngramType]
            if not len(counts):
                continue
            delta += _swap_delta(
                ngrams, counts, self.V_flat[ngramType], self.strides[ngramType], layout.pos_of_char,
                rows[char_a], rows[char_b], char_a, char_b, i, j,
            )
        return delta

    def analyze(self, layout: KeyboardLayout) -> dict[Metric, float]:
        '''
        Unweighted total of each metric over the corpus.
        '''
        aligned = self._align(layout)
        analysis = {}
        for metric in self.metrics:
            ngrams, counts, _ = aligned[metric.ngramType]
            if not len(counts):
                analysis[metric] = 0.0
                continue
            idx = self._position_index(layout, metric.ngramType, ngrams)
            analysis[metric] = float(counts @ self.M[metric].ravel()[idx])
        return analysis

    def contributions(self, layout: KeyboardLayout) -> dict[Metric, float]:
        '''
        Weighted contribution of each metric to the total cost.
        '''
        return {metric: self.weights[metric] * value for metric, value in self.analyze(layout).items()}

    def top_ngrams(self, layout: KeyboardLayout, metric: Metric, n: int = 5) -> list[tuple[str, float]]:
        '''
        The n ngrams with the largest (unweighted) total for this metric.
        '''
        aligned = self._align(layout)
        ngrams, counts, _ = aligned[metric.ngramType]
        if not len(counts):
            return []
        idx = self._position_index(layout, metric.ngramType, ngrams)
        values = counts * self.M[metric].ravel()[idx]
        order = np.argsort(-np.abs(values), kind='stable')[:n]
        return [
            (''.join(layout.chars[c] for c in ngrams[r]), float(values[r]))
            for r in order if values[r]
        ]


@jit(nopython=True)
def _rows_delta(
    ngrams: np.ndarray,
    counts: np.ndarray,
    v_flat: np.ndarray,
    strides: np.ndarray,
    pos_of_char: np.ndarray,
    rows: np.ndarray,
    skip_char: int,
    char_a: int,
    char_b: int,
    pos_a: int,
    pos_b: int,
) -> float:
    order = ngrams.shape[1]
    delta = 0.0
    for r in rows:
        skip = False
        old_index = 0
        new_index = 0
        for d in range(order):
            c = ngrams[r, d]
            if c == skip_char:
                skip = True
                break
            p = pos_of_char[c]
            old_index += p * strides[d]
            if c == char_a:
                p = pos_b
            elif c == char_b:
                p = pos_a
            new_index += p * strides[d]
        if skip:
            continue
        delta += counts[r] * (v_flat[new_index] - v_flat[old_index])
    return delta


@jit(nopython=True)
def _swap_delta(
    ngrams: np.ndarray,
    counts: np.ndarray,
    v_flat: np.ndarray,
    strides: np.ndarray,
    pos_of_char: np.ndarray,
    rows_a: np.ndarray,
    rows_b: np.ndarray,
    char_a: int,
    char_b: int,
    pos_a: int,
    pos_b: int,
) -> float:
    """
    Calculates the change in score from moving char_a (now at pos_a) to pos_b and
    char_b (now at pos_b) to pos_a.

    Rows that contain both chars appear in rows_a and rows_b; they are counted with rows_a.
    """
    delta = _rows_delta(ngrams, counts, v_flat, strides, pos_of_char, rows_a, -1, char_a, char_b, pos_a, pos_b)
    delta += _rows_delta(ngrams, counts, v_flat, strides, pos_of_char, rows_b, char_a, char_a, char_b, pos_a, pos_b)
    return delta


if __name__ == "__main__":
    import argparse
    from weights import DEFAULT_WEIGHTS

    parser = argparse.ArgumentParser(description='Score a layout on a text corpus')
    parser.add_argument('corpus', help='text corpus')
    parser.add_argument('-l', '--layout', default='qwerty', help='Layout to score (default: qwerty)')
    args = parser.parse_args()

    layout = KeyboardLayout.from_name(args.layout)
    stats = CorpusStats.from_file(args.corpus, layout.chars)
    model = CostModel(layout.hardware, DEFAULT_WEIGHTS, stats)

    print(layout)
    print(f"cost: {model.cost(layout):.1f} ({model.cost_per_char(layout):.4f} per char)")
    for metric, value in model.contributions(layout).items():
        print(f"{metric.name:16s}: {value:>12.1f}")
