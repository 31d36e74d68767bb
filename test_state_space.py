"""
Tests for the bag-exchange state space and its combinatorial transition matrix.
"""

import os
import sys

import numpy as np
import pytest
from sympy import Rational

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), 'src'))

from bag_exchange import ConfigurationError, ExchangeModel, InvalidArgument
from bag_exchange.states import (
    exact_transition_matrix,
    initial_distribution,
    possible_states,
    remove_tokens,
    state_values,
    swap_outcomes,
)

BAG_A = (1, 5)
BAG_B = (1, 3, 5)
TOKENS = (1, 1, 3, 5, 5)

EXPECTED_P = [
    [0, Rational(1, 3), Rational(2, 3), 0, 0],
    [Rational(1, 6), Rational(1, 6), Rational(1, 3), Rational(1, 3), 0],
    [Rational(1, 6), Rational(1, 6), Rational(1, 3), Rational(1, 6), Rational(1, 6)],
    [0, Rational(1, 3), Rational(1, 3), Rational(1, 6), Rational(1, 6)],
    [0, 0, Rational(2, 3), Rational(1, 3), 0],
]


def test_possible_states_are_the_five_bag_a_contents():
    states = possible_states(BAG_A, BAG_B)
    assert states == [(1, 1), (1, 3), (1, 5), (3, 5), (5, 5)]


def test_state_values_are_bag_a_totals():
    states = possible_states(BAG_A, BAG_B)
    np.testing.assert_array_equal(state_values(states), [2, 4, 6, 8, 10])


def test_swap_outcomes_cover_every_pick_pair():
    outcomes = list(swap_outcomes((1, 5), TOKENS))
    assert len(outcomes) == 6
    assert sorted(outcomes) == [(1, 1), (1, 3), (1, 5), (1, 5), (3, 5), (5, 5)]


def test_remove_tokens_rejects_foreign_tokens():
    assert remove_tokens(TOKENS, (1, 5)) == (1, 3, 5)
    with pytest.raises(ConfigurationError):
        remove_tokens(TOKENS, (3, 3))


def test_exact_matrix_matches_hand_derived_fractions():
    states = possible_states(BAG_A, BAG_B)
    P = exact_transition_matrix(states, TOKENS)
    assert P.tolist() == EXPECTED_P


def test_exact_matrix_entries_are_multiples_of_one_sixth():
    P = exact_transition_matrix(possible_states(BAG_A, BAG_B), TOKENS)
    for entry in P:
        assert (entry * 6).is_integer


def test_exact_matrix_rejects_incomplete_state_list():
    states = possible_states(BAG_A, BAG_B)[:-1]
    with pytest.raises(ConfigurationError):
        exact_transition_matrix(states, TOKENS)


def test_initial_distribution_is_one_hot_at_bag_a():
    states = possible_states(BAG_A, BAG_B)
    np.testing.assert_array_equal(initial_distribution(states, (5, 1)), [0, 0, 1, 0, 0])


def test_model_matrix_is_row_stochastic_and_read_only():
    model = ExchangeModel(BAG_A, BAG_B)
    P = model.transition_matrix
    assert P.shape == (5, 5)
    assert np.all(np.abs(P.sum(axis=1) - 1.0) <= 1e-9)
    assert np.all((P >= 0) & (P <= 1))
    with pytest.raises(ValueError):
        P[0, 0] = 0.5


def test_model_float_matrix_agrees_with_exact_matrix():
    model = ExchangeModel(BAG_A, BAG_B)
    expected = np.array(EXPECTED_P, dtype=float)
    np.testing.assert_allclose(model.transition_matrix, expected, rtol=0, atol=1e-15)


def test_model_metadata():
    model = ExchangeModel(BAG_A, BAG_B)
    assert model.tokens == TOKENS
    assert model.total_value == 15
    assert model.state_index((5, 1)) == 2
    assert model.describe_states()[0] == "A{1,1} B{3,5,5}"


def test_model_for_other_bags_stays_consistent():
    model = ExchangeModel((2, 2, 7), (1, 4))
    # 3 positions in A, 2 in B
    for entry in model.exact_matrix:
        assert (entry * 6).is_integer
    np.testing.assert_allclose(model.transition_matrix.sum(axis=1), 1.0, atol=1e-9)
    assert model.values[model.state_index((2, 2, 7))] == 11


def test_empty_bag_is_rejected():
    with pytest.raises(InvalidArgument):
        ExchangeModel((), (1, 2))
