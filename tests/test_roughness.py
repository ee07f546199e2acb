import numpy as np
import pytest

from roadrough.analysis.roughness import RoughnessEstimator, roughness_to_color
from roadrough.analysis.signal_filter import SignalFilter


def test_empty_window_scores_zero():
    assert RoughnessEstimator().estimate([]) == 0.0


def test_identical_values_score_zero():
    assert RoughnessEstimator().estimate([3.3] * 25) == 0.0


def test_population_variance_not_sample_variance():
    # mean 2.5, squared deviations 2.25 + 0.25 + 0.25 + 2.25 = 5, over n = 4
    assert RoughnessEstimator().estimate([1, 2, 3, 4]) == pytest.approx(1.25)


def test_score_is_never_negative_or_nan():
    rng = np.random.default_rng(42)
    estimator = RoughnessEstimator()
    for _ in range(20):
        window = rng.normal(0, rng.uniform(0.1, 5), size=rng.integers(1, 200))
        score = estimator.estimate(window.tolist())
        assert score >= 0.0
        assert not np.isnan(score)


def test_non_finite_values_do_not_poison_the_score():
    estimator = RoughnessEstimator()
    assert estimator.estimate([float("nan")]) == 0.0
    assert estimator.estimate([1.0, float("nan"), 3.0]) == pytest.approx(1.0)


def test_estimate_from_drains_the_filter():
    f = SignalFilter()
    for x in [1, 2, 3, 2, 1]:
        f.add_sample(x)

    score = RoughnessEstimator().estimate_from(f)

    assert score == pytest.approx(np.var([0.8, 1.44, 1.952, 0.7616, -0.19072]))
    assert len(f) == 0
    assert RoughnessEstimator().estimate_from(f) == 0.0


@pytest.mark.parametrize("roughness, color", [
    (0, '#ffffff'),
    (3, '#dddddd'),
    (3.01, '#bbbbbb'),
    (15, '#777777'),
    (30, '#333333'),
    (30.5, '#000000'),
    (1000, '#000000'),
])
def test_roughness_to_color(roughness, color):
    assert roughness_to_color(roughness) == color


def test_roughness_to_color_custom_scale():
    assert roughness_to_color(2, thresholds=[1, 5], colors=['a', 'b', 'c']) == 'b'
    assert roughness_to_color(9, thresholds=[1, 5], colors=['a', 'b', 'c']) == 'c'
