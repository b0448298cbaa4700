import json
import sys
from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from corpus import CorpusStats, NgramType, fold_shifted
from errors import InputError

LETTERS = 'abcdefghijklmnopqrstuvwxyz'


def test_counts_within_runs():
    stats = CorpusStats.from_text("abc ab", LETTERS)
    assert stats.counts[NgramType.MONOGRAM] == {'a': 2, 'b': 2, 'c': 1}
    assert stats.counts[NgramType.BIGRAM] == {'ab': 2, 'bc': 1}
    assert stats.counts[NgramType.TRIGRAM] == {'abc': 1}
    assert stats.counts[NgramType.QUADGRAM] == {}


def test_no_ngram_spans_a_separator():
    stats = CorpusStats.from_text("ab\ncd-ef 9gh", LETTERS, fold_shift=False)
    for ngram_type in NgramType:
        for ngram in stats.counts[ngram_type]:
            assert all(c in LETTERS for c in ngram)
    assert 'bc' not in stats.counts[NgramType.BIGRAM]
    assert 'de' not in stats.counts[NgramType.BIGRAM]
    assert 'fg' not in stats.counts[NgramType.BIGRAM]
    assert stats.counts[NgramType.BIGRAM] == {'ab': 1, 'cd': 1, 'ef': 1, 'gh': 1}


def test_quadgrams_slide():
    stats = CorpusStats.from_text("abcde", LETTERS)
    assert stats.counts[NgramType.QUADGRAM] == {'abcd': 1, 'bcde': 1}


def test_fold_shift():
    assert fold_shifted('Hello? "Yes": <a>') == "hello/ 'yes'; ,a."
    stats = CorpusStats.from_text("A?b", LETTERS + '/')
    assert stats.counts[NgramType.TRIGRAM] == {'a/b': 1}

    unfolded = CorpusStats.from_text("A?b", LETTERS + '/', fold_shift=False)
    assert unfolded.counts[NgramType.MONOGRAM] == {'b': 1}


def test_empty_corpus():
    with pytest.raises(InputError):
        CorpusStats.from_text("", LETTERS)
    with pytest.raises(InputError):
        CorpusStats.from_text("123 456 !!!", LETTERS)


def test_unreadable_corpus(tmp_path):
    with pytest.raises(InputError):
        CorpusStats.from_file(tmp_path / "missing.txt", LETTERS)


def test_from_file_and_save(tmp_path):
    path = tmp_path / "fox.txt"
    path.write_text("The quick brown fox\njumps over the lazy dog", encoding="utf-8")
    stats = CorpusStats.from_file(path, LETTERS)
    assert stats.corpus_name == 'fox'
    assert stats.total_chars == 35
    assert stats.counts[NgramType.BIGRAM]['th'] == 2

    saved = tmp_path / "fox.json"
    stats.save(saved)
    loaded = CorpusStats.from_file(saved, LETTERS)
    assert loaded.counts == stats.counts
    assert loaded.corpus_name == 'fox'

    payload = json.loads(saved.read_text(encoding="utf-8"))
    assert set(payload['counts']) == {'MONOGRAM', 'BIGRAM', 'TRIGRAM', 'QUADGRAM'}


def test_malformed_json(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(InputError):
        CorpusStats.from_file(path, LETTERS)


def test_select_and_normalized():
    stats = CorpusStats.from_text("abc abd", LETTERS)
    selected = stats.select({'a', 'b'})
    assert selected.alphabet == ('a', 'b')
    assert selected.counts[NgramType.BIGRAM] == {'ab': 2}
    assert selected.counts[NgramType.TRIGRAM] == {}

    normalized = stats.normalized()
    assert sum(normalized.counts[NgramType.MONOGRAM].values()) == pytest.approx(1.0)
    assert normalized.counts[NgramType.BIGRAM]['ab'] == pytest.approx(2 / 6)


def test_to_numpy_and_rows_with_char():
    stats = CorpusStats.from_text("the then", 'then')
    F = stats.to_numpy()
    ngrams, counts = F[NgramType.BIGRAM]
    assert ngrams.shape == (3, 2)
    assert counts.shape == (3,)
    decoded = {''.join(stats.alphabet[c] for c in row): count for row, count in zip(ngrams, counts)}
    assert decoded == {'th': 2.0, 'he': 2.0, 'en': 1.0}

    rows = stats.rows_with_char(NgramType.BIGRAM)
    h = stats.alphabet.index('h')
    assert sorted(''.join(stats.alphabet[c] for c in ngrams[r]) for r in rows[h]) == ['he', 'th']
    assert all(r.dtype == np.int64 for r in rows)
