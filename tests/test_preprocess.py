"""Tests for the MS/MS preprocessing chain."""
import numpy as np
import pytest

from msplsda.data.matrix import FeatureMatrix
from msplsda.data.preprocess import (
    PreprocessConfig,
    feature_variance,
    filter_missing,
    impute_half_minimum,
    log_transform,
    missingness_report,
    normalize_median,
    preprocess,
    select_top_variance,
)
from msplsda.errors import InvalidConfiguration, InvalidInput, NumericError


def _matrix(values, prefix="F"):
    values = np.asarray(values, dtype=float)
    return FeatureMatrix(
        values,
        [f"{prefix}{i + 1}" for i in range(values.shape[0])],
        [f"S{j + 1}" for j in range(values.shape[1])],
    )


# ------------------------------------------------------------ missingness


def test_filter_missing_default_threshold(raw_matrix):
    out = filter_missing(raw_matrix)
    # M3 is missing in exactly half the samples and is dropped too
    assert out.feature_ids == ("M1", "M2", "M4", "M5")
    assert out.sample_ids == raw_matrix.sample_ids


def test_filter_missing_custom_threshold(raw_matrix):
    assert filter_missing(raw_matrix, 0.6).feature_ids == ("M1", "M2", "M3", "M4", "M5")
    assert filter_missing(raw_matrix, 1.0).n_features == 6


def test_filter_missing_all_removed():
    m = _matrix([[np.nan, 1.0], [np.nan, np.nan]])
    with pytest.raises(InvalidInput, match="All 2 features"):
        filter_missing(m, 0.5)


@pytest.mark.parametrize("threshold", [0.0, -0.1, 1.5])
def test_filter_missing_bad_threshold(raw_matrix, threshold):
    with pytest.raises(InvalidConfiguration):
        filter_missing(raw_matrix, threshold)


# ------------------------------------------------------------- imputation


def test_impute_half_minimum(raw_matrix):
    out = impute_half_minimum(filter_missing(raw_matrix))
    assert not out.has_missing
    m2 = out.feature_ids.index("M2")
    # min observed intensity of M2 is 180
    assert out.values[m2, 1] == pytest.approx(90.0)
    # observed cells untouched
    assert out.values[m2, 0] == pytest.approx(200.0)


def test_impute_without_missing_returns_same_matrix():
    m = _matrix([[1.0, 2.0], [3.0, 4.0]])
    assert impute_half_minimum(m) is m


def test_impute_all_missing_row_raises():
    m = _matrix([[1.0, 2.0, 3.0], [np.nan, np.nan, np.nan], [4.0, np.nan, 6.0]])
    with pytest.raises(InvalidInput, match="F2"):
        impute_half_minimum(m)


# ---------------------------------------------------------- log transform


def test_log_transform_default_is_log2_plus_one():
    out = log_transform(_matrix([[0.0, 1.0, 3.0]]))
    np.testing.assert_allclose(out.values, [[0.0, 1.0, 2.0]])


def test_log_transform_custom_base_and_offset():
    out = log_transform(_matrix([[10.0, 100.0]]), offset=0.0, base=10.0)
    np.testing.assert_allclose(out.values, [[1.0, 2.0]])


def test_log_transform_non_positive_argument_names_cell():
    m = _matrix([[1.0, 2.0], [3.0, -2.0]])
    with pytest.raises(NumericError, match="F2.*S2"):
        log_transform(m)


@pytest.mark.parametrize("base", [1.0, 0.0, -2.0])
def test_log_transform_bad_base(base):
    with pytest.raises(InvalidConfiguration):
        log_transform(_matrix([[1.0, 2.0]]), base=base)


# ---------------------------------------------------------- normalization


def test_normalize_median_equalizes_sample_medians():
    m = _matrix([[1.0, 3.0, 10.0], [2.0, 4.0, 20.0], [3.0, 5.0, 30.0]])
    out = normalize_median(m)
    medians = np.median(out.values, axis=0)
    np.testing.assert_allclose(medians, [4.0, 4.0, 4.0])
    # within-sample differences are preserved
    np.testing.assert_allclose(np.diff(out.values, axis=0), np.diff(m.values, axis=0))


# ------------------------------------------------------ variance selection


def test_feature_variance_needs_two_samples():
    with pytest.raises(InvalidInput, match="at least 2 samples"):
        feature_variance(_matrix([[1.0], [2.0]]))


def test_select_top_variance_keeps_original_order():
    m = _matrix([
        [0.0, 0.0, 0.0],
        [1.0, 2.0, 3.0],
        [0.0, 0.0, 0.0],
        [3.0, 2.0, 1.0],
        [0.0, 5.0, 10.0],
    ])
    # F2 and F4 tie; the earlier one wins
    assert select_top_variance(m, 2).feature_ids == ("F2", "F5")
    assert select_top_variance(m, 3).feature_ids == ("F2", "F4", "F5")


def test_select_top_variance_more_than_available():
    m = _matrix([[1.0, 2.0], [3.0, 5.0]])
    assert select_top_variance(m, 10) is m


def test_select_top_variance_bad_count():
    with pytest.raises(InvalidConfiguration):
        select_top_variance(_matrix([[1.0, 2.0]]), 0)


# ------------------------------------------------------------ full chain


def test_preprocess_chain(raw_matrix):
    config = PreprocessConfig(top_variance_count=3)
    out = preprocess(raw_matrix, config)

    assert out.n_features == 3
    assert out.n_samples == 6
    assert not out.has_missing
    assert set(out.feature_ids) <= {"M1", "M2", "M4", "M5"}
    # input is never modified
    assert raw_matrix.n_features == 6
    assert np.isnan(raw_matrix.values[1, 1])


def test_preprocess_without_log_and_normalization(raw_matrix):
    config = PreprocessConfig(log_transform=False, normalize=False, top_variance_count=10)
    out = preprocess(raw_matrix, config)
    m1 = out.feature_ids.index("M1")
    np.testing.assert_allclose(out.values[m1], raw_matrix.values[0])


def test_preprocess_config_from_dict():
    config = PreprocessConfig.from_dict({"top_variance_count": 100, "log_base": 10.0})
    assert config.top_variance_count == 100
    assert config.log_base == 10.0
    assert config.missing_threshold == 0.5
    assert PreprocessConfig.from_dict(None) == PreprocessConfig()
    assert PreprocessConfig.from_dict(config.to_dict()) == config


def test_preprocess_config_unknown_key():
    with pytest.raises(InvalidConfiguration, match="bogus"):
        PreprocessConfig.from_dict({"bogus": 1})


def test_missingness_report(raw_matrix):
    report = missingness_report(raw_matrix)
    assert report["overall"] == pytest.approx(8 / 36)
    assert report["n_complete_features"] == 3
    assert report["per_feature"]["M6"] == pytest.approx(4 / 6)
    assert report["per_sample"]["S2"] == pytest.approx(2 / 6)
