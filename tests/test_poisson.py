import math

import pytest

from pitchedge.services.goal_model import LambdaPair
from pitchedge.services.poisson import build_score_matrix, poisson_pmf


def test_poisson_pmf_zero_lambda():
    assert poisson_pmf(0, 0.0) == 1.0
    assert poisson_pmf(3, 0.0) == 0.0
    assert poisson_pmf(-1, 1.5) == 0.0


def test_poisson_pmf_matches_closed_form():
    lam = 1.7
    assert poisson_pmf(2, lam) == pytest.approx(math.exp(-lam) * lam**2 / 2)


@pytest.mark.parametrize("lh,la", [(0.3, 0.2), (1.2, 1.2), (1.8, 1.1), (3.5, 0.9), (4.8, 4.1)])
def test_matrix_plus_tail_sums_to_one(lh, la):
    matrix = build_score_matrix(LambdaPair(lh, la))
    assert abs(matrix.total - 1.0) < 1e-6
    assert matrix.tail >= 0.0


def test_matrix_shape_and_cells():
    matrix = build_score_matrix(LambdaPair(1.4, 1.0), max_goals=6)
    assert matrix.max_goals == 6
    cells = list(matrix.cells())
    assert len(cells) == 49
    assert all(p >= 0 for _, _, p in cells)
    assert matrix.prob(7, 0) == 0.0
    assert matrix.prob(1, 1) == pytest.approx(poisson_pmf(1, 1.4) * poisson_pmf(1, 1.0))


def test_low_total_probability_is_exact_inside_grid():
    matrix = build_score_matrix(LambdaPair(1.8, 1.1))
    total = 2.9
    expected = math.exp(-total) * (1 + total + total**2 / 2)
    assert matrix.total_goals_at_most(2) == pytest.approx(expected, abs=1e-9)


def test_max_goals_must_be_positive():
    with pytest.raises(ValueError):
        build_score_matrix(LambdaPair(1.0, 1.0), max_goals=0)
