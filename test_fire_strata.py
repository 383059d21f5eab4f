"""
Tests for fire-count weights and fire classes.
"""

import numpy as np
import pandas as pd
import pytest

from soil_fire_analysis.fire_strata import (
    fire_weight_lookup, compute_fire_weights, bin_fire_count, add_fire_class
)


def test_weights_average_one_over_distinct_counts():
    fires = [0, 0, 0, 0, 1, 1, 2, 3, 3, 3, 7]
    lookup = fire_weight_lookup(fires)

    assert list(lookup['fires']) == [0, 1, 2, 3, 7]
    assert lookup['n'].sum() == len(fires)
    assert lookup['weight'].mean() == pytest.approx(1.0)


def test_weight_init_is_share_of_observations():
    lookup = fire_weight_lookup([0, 0, 0, 1, 5])

    np.testing.assert_allclose(lookup['weight_init'], [0.6, 0.2, 0.2])
    np.testing.assert_allclose(lookup['weight'], [1.8, 0.6, 0.6])


def test_per_observation_weights_follow_input_order():
    weights = compute_fire_weights([5, 0, 1, 0, 0])
    np.testing.assert_allclose(weights, [0.6, 1.8, 0.6, 1.8, 1.8])


def test_single_fire_count_gets_weight_one():
    lookup = fire_weight_lookup([2, 2, 2])
    assert lookup['weight'].tolist() == [1.0]


def test_empty_fire_counts_rejected():
    with pytest.raises(ValueError):
        fire_weight_lookup([])


def test_missing_fire_counts_rejected():
    with pytest.raises(ValueError):
        fire_weight_lookup([1, np.nan, 2])


@pytest.mark.parametrize("fires, label", [
    (0, '0to1'),
    (1, '0to1'),
    (2, '2to3'),
    (3, '2to3'),
    (4, '4plus'),
    (11, '4plus'),
])
def test_bin_boundaries_are_left_inclusive(fires, label):
    assert bin_fire_count([fires])[0] == label


def test_bins_are_ordered_categories():
    classes = bin_fire_count([5, 0, 2])
    assert classes.ordered
    assert list(classes.categories) == ['0to1', '2to3', '4plus']
    assert classes[1] < classes[2] < classes[0]


def test_counts_outside_breaks_are_missing():
    classes = bin_fire_count([-3, 1])
    assert pd.isna(classes[0])
    assert classes[1] == '0to1'


def test_label_count_must_match_breaks():
    with pytest.raises(ValueError):
        bin_fire_count([1, 2], breaks=[-1, 2, 4, np.inf], labels=['low', 'high'])


def test_add_fire_class_leaves_input_untouched():
    df = pd.DataFrame({'fires': [0, 3, 6]})
    out = add_fire_class(df)

    assert 'fire_class' not in df.columns
    assert list(out['fire_class'].astype(str)) == ['0to1', '2to3', '4plus']
