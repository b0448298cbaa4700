"""Utilities for turning raw text into n-gram statistics."""

from __future__ import annotations

import json
import logging
from collections import Counter
from enum import Enum
from functools import cache
from pathlib import Path
from typing import Iterable, Iterator

import numpy as np

from errors import InputError

logger = logging.getLogger(__name__)


class NgramType(Enum):
    MONOGRAM = 1
    BIGRAM = 2
    TRIGRAM = 3
    QUADGRAM = 4

    @property
    def order(self) -> int:
        return self.value


# shifted ANSI symbols share a key with their unshifted counterpart
SHIFTED_SYMBOLS: dict[str, str] = {
    '?': '/',
    ':': ';',
    '<': ',',
    '>': '.',
    '"': "'",
    '_': '-',
    '+': '=',
}


def fold_shifted(text: str) -> str:
    """Lowercase the text and replace shifted symbols by the symbol on the same key."""
    return text.lower().translate(str.maketrans(SHIFTED_SYMBOLS))


def _runs(text: str, alphabet: set[str]) -> Iterator[str]:
    '''maximal runs of in-alphabet characters, every other character is a separator'''
    start = None
    for i, char in enumerate(text):
        if char in alphabet:
            if start is None:
                start = i
        elif start is not None:
            yield text[start:i]
            start = None
    if start is not None:
        yield text[start:]


def rows_containing(ngrams: np.ndarray, n_chars: int) -> list[np.ndarray]:
    '''
    For each char id in range(n_chars), the indices of the rows of `ngrams` that contain it.
    Rows with a repeated char are listed once.
    '''
    if ngrams.shape[0] == 0:
        return [np.empty(0, dtype=np.int64) for _ in range(n_chars)]
    return [
        np.nonzero((ngrams == c).any(axis=1))[0].astype(np.int64)
        for c in range(n_chars)
    ]


class CorpusStats:
    '''
    Counts of the monograms, bigrams, trigrams and quadgrams of a corpus, restricted to
    an alphabet. Immutable after construction: every derived view is a new instance.
    '''

    def __init__(
        self,
        corpus_name: str,
        alphabet: Iterable[str],
        counts: dict[str | NgramType, dict[str, float]] | None = None,
    ):
        self.corpus_name = corpus_name
        self.alphabet = tuple(dict.fromkeys(alphabet))
        self.counts: dict[NgramType, dict[str, float]] = {t: {} for t in NgramType}

        if counts is None:
            return

        alphabet_set = set(self.alphabet)
        for ngram_name_or_type, table in counts.items():
            if isinstance(ngram_name_or_type, str):
                if ngram_name_or_type not in NgramType.__members__:
                    logger.warning(f"'{ngram_name_or_type}' in {corpus_name} is not a valid ngram type. Ignoring.")
                    continue
                ngram_type = NgramType[ngram_name_or_type]
            else:
                ngram_type = ngram_name_or_type

            for ngram, count in table.items():
                if len(ngram) != ngram_type.order:
                    raise InputError(f"{corpus_name}: '{ngram}' is not a {ngram_type.name.lower()}")
                if not all(c in alphabet_set for c in ngram):
                    raise InputError(f"{corpus_name}: '{ngram}' uses characters outside the alphabet")
                if isinstance(count, bool) or not isinstance(count, (int, float)):
                    raise InputError(f"{corpus_name}: count for '{ngram}' is not a number")
                if count < 0:
                    raise InputError(f"{corpus_name}: negative count for '{ngram}'")
            self.counts[ngram_type] = {ngram: float(count) for ngram, count in table.items() if count}

    def __repr__(self) -> str:
        sizes = ', '.join(f'{t.name.lower()}s={len(self.counts[t])}' for t in NgramType)
        return f"CorpusStats(corpus_name='{self.corpus_name}', alphabet={len(self.alphabet)}, {sizes})"

    @classmethod
    def from_text(
        cls,
        text: str,
        alphabet: Iterable[str],
        corpus_name: str = 'text',
        fold_shift: bool = True,
    ) -> CorpusStats:
        """
        Count every n-gram of order 1 to 4 that lies within a run of alphabet characters.

        Parameters
        ----------
        text:
            The raw corpus.
        alphabet:
            The characters to count; any other character (spaces, newlines, digits...)
            separates runs and never appears inside an n-gram.
        fold_shift:
            Lowercase the text and fold shifted symbols to their unshifted key first.

        Raises
        ------
        InputError
            If no character of the alphabet occurs in the text.
        """
        alphabet = tuple(dict.fromkeys(alphabet))
        if fold_shift:
            text = fold_shifted(text)

        counters = {t: Counter() for t in NgramType}
        for run in _runs(text, set(alphabet)):
            for ngram_type in NgramType:
                n = ngram_type.order
                counters[ngram_type].update(run[i:i + n] for i in range(len(run) - n + 1))

        if not counters[NgramType.MONOGRAM]:
            raise InputError(f"Corpus '{corpus_name}' contains no characters of the alphabet")

        logger.debug(
            f"{corpus_name}: {sum(counters[NgramType.MONOGRAM].values())} characters, "
            f"{len(counters[NgramType.BIGRAM])} distinct bigrams"
        )
        return cls(corpus_name, alphabet, {t: dict(counters[t]) for t in NgramType})

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        alphabet: Iterable[str],
        fold_shift: bool = True,
    ) -> CorpusStats:
        """
        Read a UTF-8 text corpus, or a ``.json`` file previously written by `save`.
        A json file is restricted to `alphabet`.
        """
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as fp:
                if path.suffix == '.json':
                    payload = json.load(fp)
                else:
                    text = fp.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise InputError(f"Cannot read corpus {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise InputError(f"Malformed corpus file {path}: {exc}") from exc

        if path.suffix != '.json':
            return cls.from_text(text, alphabet, corpus_name=path.stem, fold_shift=fold_shift)

        if not isinstance(payload, dict) or 'counts' not in payload:
            raise InputError(f"Malformed corpus file {path}: expected an object with 'counts'")
        counts = payload['counts']
        if not isinstance(counts, dict) or not all(isinstance(table, dict) for table in counts.values()):
            raise InputError(f"Malformed corpus file {path}: counts must map ngram types to tables")
        file_alphabet = payload.get('alphabet') or list(counts.get('MONOGRAM', {}))
        stats = cls(payload.get('corpus_name', path.stem), file_alphabet, counts)
        stats = stats.select(set(alphabet))
        if not stats.counts[NgramType.MONOGRAM]:
            raise InputError(f"Corpus '{stats.corpus_name}' contains no characters of the alphabet")
        return stats

    def save(self, path: str | Path) -> None:
        payload = {
            'corpus_name': self.corpus_name,
            'alphabet': list(self.alphabet),
            'counts': {t.name: self.counts[t] for t in NgramType},
        }
        with Path(path).open("w", encoding="utf-8") as fp:
            json.dump(payload, fp, ensure_ascii=False, indent=1)

    @property
    def total_chars(self) -> float:
        return sum(self.counts[NgramType.MONOGRAM].values())

    def chars_in_use(self) -> set[str]:
        '''characters of the alphabet that occur in the corpus'''
        return set(self.counts[NgramType.MONOGRAM])

    def is_empty(self) -> bool:
        return not self.counts[NgramType.MONOGRAM]

    def select(self, char_set: set[str]) -> CorpusStats:
        """Select a subset of the statistics for the given set of characters."""
        return CorpusStats(
            self.corpus_name,
            [c for c in self.alphabet if c in char_set],
            {
                t: {
                    ngram: v
                    for ngram, v in self.counts[t].items()
                    if all(c in char_set for c in ngram)
                } for t in self.counts
            }
        )

    def normalized(self) -> CorpusStats:
        """Normalize the statistics so that the sum of the monogram frequencies is 1."""

        total = self.total_chars

        if not total:
            return self

        return CorpusStats(
            self.corpus_name,
            self.alphabet,
            {
                t: {ngram: v / total for ngram, v in self.counts[t].items()} for t in self.counts
            }
        )

    def top(self, ngram_type: NgramType, n: int) -> list[tuple[str, float]]:
        """The n most frequent n-grams of the given type."""
        return sorted(self.counts[ngram_type].items(), key=lambda x: -x[1])[:n]

    # cache the result of this method
    @cache
    def to_numpy(self) -> dict[NgramType, tuple[np.ndarray, np.ndarray]]:
        """
        Convert each ngram type to a pair of numpy arrays (ngrams, counts):

            ngrams[r] = the char ids (indices in self.alphabet) of the r-th ngram, shape (M, order)
            counts[r] = the count of the r-th ngram, shape (M,)

        Example: with alphabet ('t', 'h', 'e') and bigrams {'th': 2, 'he': 1}
            ngrams = [[0, 1], [1, 2]], counts = [2.0, 1.0]
        """
        char_id = {c: i for i, c in enumerate(self.alphabet)}
        F = {}
        for ngram_type, table in self.counts.items():
            order = ngram_type.order
            ngrams = np.array(
                [[char_id[c] for c in ngram] for ngram in table],
                dtype=np.int64
            ).reshape(-1, order)
            counts = np.fromiter(table.values(), dtype=np.float64, count=len(table))
            F[ngram_type] = (ngrams, counts)
        return F

    def rows_with_char(self, ngram_type: NgramType) -> list[np.ndarray]:
        ngrams, _ = self.to_numpy()[ngram_type]
        return rows_containing(ngrams, len(self.alphabet))


if __name__ == "__main__":
    stats = CorpusStats.from_text("The quick brown fox jumps over the lazy dog.", "abcdefghijklmnopqrstuvwxyz")
    for ngram_type in NgramType:
        print(f"{ngram_type.name}: {len(stats.counts[ngram_type])} entries")
        print(stats.top(ngram_type, 10))
        print()
