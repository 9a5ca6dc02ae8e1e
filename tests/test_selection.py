"""
Tests for selector resolution (predicates, masks, key lists).
"""

import numpy as np
import pandas as pd
import pytest

from linkedexp.core.errors import DuplicateKey, KeySetMismatch, UnknownKey
from linkedexp.core.selection import records, resolve_selector


@pytest.fixture
def keys():
    return pd.Index(['g1', 'g2', 'g3', 'g4'])


@pytest.fixture
def annotation(keys):
    return pd.DataFrame(
        {'type': ['mRNA', 'ncRNA', 'mRNA', None], 'length': [100, 2000, 300, 50]},
        index=keys,
    )


def resolve(selector, keys, annotation):
    return resolve_selector(selector, keys, annotation, 'row').tolist()


class TestResolveSelector:

    def test_none_keeps_all(self, keys, annotation):
        assert resolve(None, keys, annotation) == [0, 1, 2, 3]

    def test_slice(self, keys, annotation):
        assert resolve(slice(1, 3), keys, annotation) == [1, 2]

    def test_vectorized_predicate(self, keys, annotation):
        assert resolve(lambda a: a['length'] > 200, keys, annotation) == [1, 2]

    def test_predicate_missing_values_select_nothing(self, keys, annotation):
        assert resolve(lambda a: a['type'] == 'mRNA', keys, annotation) == [0, 2]

    def test_per_record_predicate(self, keys, annotation):
        selector = records(lambda gene: gene['length'] < 200)
        assert resolve(selector, keys, annotation) == [0, 3]

    def test_predicate_sees_copy(self, keys, annotation):
        def mutate(a):
            a['length'] = 0
            return a['length'] == 0

        resolve(mutate, keys, annotation)
        assert annotation['length'].tolist() == [100, 2000, 300, 50]

    def test_boolean_array(self, keys, annotation):
        mask = np.array([True, False, False, True])
        assert resolve(mask, keys, annotation) == [0, 3]

    def test_boolean_list(self, keys, annotation):
        assert resolve([False, True, True, False], keys, annotation) == [1, 2]

    def test_boolean_series_aligned_by_key(self, keys, annotation):
        """A Series mask is matched by key, not by position."""
        mask = pd.Series([True, False, False, False], index=['g4', 'g1', 'g2', 'g3'])
        assert resolve(mask, keys, annotation) == [3]

    def test_boolean_series_wrong_keys(self, keys, annotation):
        mask = pd.Series([True] * 4, index=['g1', 'g2', 'g3', 'g9'])
        with pytest.raises(KeySetMismatch):
            resolve(mask, keys, annotation)

    def test_mask_wrong_length(self, keys, annotation):
        with pytest.raises(ValueError, match="length"):
            resolve(np.array([True, False]), keys, annotation)

    def test_predicate_must_return_boolean(self, keys, annotation):
        with pytest.raises(TypeError, match="boolean"):
            resolve(lambda a: a['length'], keys, annotation)

    def test_key_list_keeps_request_order(self, keys, annotation):
        assert resolve(['g3', 'g1'], keys, annotation) == [2, 0]

    def test_key_index(self, keys, annotation):
        assert resolve(pd.Index(['g2']), keys, annotation) == [1]

    def test_empty_key_list(self, keys, annotation):
        assert resolve([], keys, annotation) == []

    def test_unknown_keys(self, keys, annotation):
        with pytest.raises(UnknownKey) as exc_info:
            resolve(['g1', 'x', 'y'], keys, annotation)
        assert exc_info.value.keys == ('x', 'y')
        assert exc_info.value.axis == 'row'

    def test_duplicate_keys(self, keys, annotation):
        with pytest.raises(DuplicateKey):
            resolve(['g1', 'g1'], keys, annotation)

    def test_single_string_rejected(self, keys, annotation):
        with pytest.raises(TypeError, match="single string"):
            resolve('g1', keys, annotation)

    def test_unsupported_type(self, keys, annotation):
        with pytest.raises(TypeError, match="Unsupported"):
            resolve(42, keys, annotation)
