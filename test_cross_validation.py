"""
Tests for the exact-vs-simulated comparison and the text report.
"""

import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), 'src'))

import bag_exchange
from bag_exchange import ExchangeModel, InvalidArgument
from bag_exchange.compare import compare_estimates, convergence_table, cross_validate, format_matrix, format_vector, report

import main


@pytest.fixture
def model():
    return ExchangeModel(bag_exchange.BAG_A, bag_exchange.BAG_B)


def test_compare_estimates_within_and_outside_bound():
    close = compare_estimates(6.0, 6.01, 0.005)
    assert close["agrees"]
    assert close["z_score"] == pytest.approx(2.0)
    far = compare_estimates(6.0, 6.1, 0.005)
    assert not far["agrees"]
    assert far["p_value"] < 1e-6


def test_compare_estimates_with_zero_standard_error():
    assert compare_estimates(6.0, 6.0, 0.0)["agrees"]
    assert not compare_estimates(6.0, 7.0, 0.0)["agrees"]


def test_cross_validate_agrees(model):
    validation = cross_validate(model, steps=3, trial_count=50000, seed=11)
    assert validation.analytical == pytest.approx(6.0, abs=1e-12)
    assert validation.trial_count == 50000
    assert validation.agrees
    assert abs(validation.sample_mean - 6.0) < 5 * validation.standard_error
    np.testing.assert_allclose(validation["distribution"], model.propagate(3))


def test_convergence_table(model):
    table = convergence_table(model, 3, [1000, 10000, 100000], seed=5)
    assert list(table["trial_count"]) == [1000, 10000, 100000]
    assert set(table.columns) >= {"sample_mean", "standard_error", "abs_error", "bound", "within_bound"}
    assert table["within_bound"].all()
    assert table["standard_error"].is_monotonic_decreasing
    with pytest.raises(InvalidArgument):
        convergence_table(model, 3, [])


def test_formatting_uses_six_decimals():
    assert format_vector([1/6, 0.5]) == "[ 0.166667 0.500000 ]"
    assert format_matrix([[1.0, 0.0], [0.0, 1.0]]) == "[ 1.000000 0.000000 ]\n[ 0.000000 1.000000 ]"


def test_report_contains_all_sections(model):
    validation = cross_validate(model, steps=3, trial_count=2000, seed=1)
    text = report(model, validation)
    assert "Transition matrix P:" in text
    assert "[ 0.000000 0.333333 0.666667 0.000000 0.000000 ]" in text
    assert "[ 0.106481 0.199074 0.388889 0.199074 0.106481 ]" in text
    assert "Exact expectation of bag A after 3 steps: 6.000000" in text
    assert "Monte Carlo mean over 2000 trials:" in text


def test_main_prints_report(capsys):
    assert main.main(["--trial_count", "3000", "--simulation_id", "4"]) == 0
    out = capsys.readouterr().out
    assert "6.000000" in out


def test_simulation_seed_is_stable():
    assert main.generate_simulation_seed(4) == main.generate_simulation_seed(4)
    assert main.generate_simulation_seed(4) != main.generate_simulation_seed(5)
    assert 0 <= main.generate_simulation_seed(4, salt="x") < 2**32


class MismatchedModel:
    bag_a = bag_exchange.BAG_A
    bag_b = bag_exchange.BAG_B
    values = np.array([2.0, 4.0, 6.0, 8.0])

    def propagate(self, steps):
        return np.array([0.0, 0.0, 1.0, 0.0, 0.0])


def test_cross_validate_checks_value_map_length():
    from bag_exchange import DimensionMismatch

    with pytest.raises(DimensionMismatch):
        cross_validate(MismatchedModel(), steps=3, trial_count=100, seed=0)
