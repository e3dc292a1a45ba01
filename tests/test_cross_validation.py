"""Tests for leave-one-out and k-fold cross-validation."""
import numpy as np
import pytest

from msplsda.errors import InsufficientData, InvalidConfiguration, InvalidInput
from msplsda.evaluation.cross_validation import (
    CVScheme,
    check_fold_classes,
    check_resampling_data,
    cross_validate,
)
from msplsda.models.encoding import encode_labels


def _xy(data):
    matrix, labels = data
    enc = encode_labels(labels)
    return matrix.samples_by_features(), enc.indicator, enc.classes


def test_loocv_separable_data_is_perfect(separable_data):
    X, Y, classes = _xy(separable_data)
    cv = cross_validate(X, Y, 2, classes=classes)

    assert cv.n_samples == 10
    assert cv.n_folds == 10
    assert cv.predictions.shape == (10, 2)
    np.testing.assert_allclose(cv.accuracy, [1.0, 1.0])
    np.testing.assert_array_equal(cv.misclassified, [0, 0])
    np.testing.assert_allclose(cv.balanced_error_rate, [0.0, 0.0])


def test_bookkeeping(three_class_data):
    X, Y, classes = _xy(three_class_data)
    cv = cross_validate(X, Y, 2, classes=classes)
    codes = np.argmax(Y, axis=1)

    assert cv.confusion.shape == (2, 3, 3)
    for h in range(2):
        correct = int(np.sum(cv.predictions[:, h] == codes))
        assert correct + cv.misclassified[h] == cv.n_samples
        assert cv.confusion[h].sum() == cv.n_samples
        assert np.trace(cv.confusion[h]) == correct
        np.testing.assert_array_equal(cv.confusion[h].sum(axis=1), [5, 5, 5])
    assert np.all((cv.accuracy >= 0) & (cv.accuracy <= 1))
    np.testing.assert_allclose(cv.accuracy + cv.error_rate, 1.0)
    assert cv.accuracy[-1] >= 0.8


def test_balanced_error_rate_is_mean_class_error(three_class_data):
    X, Y, _ = _xy(three_class_data)
    cv = cross_validate(X, Y, 2)
    conf = cv.confusion[1]
    per_class = 1.0 - np.diag(conf) / conf.sum(axis=1)
    assert cv.balanced_error_rate[1] == pytest.approx(per_class.mean())


def test_result_is_read_only(separable_data):
    X, Y, _ = _xy(separable_data)
    cv = cross_validate(X, Y, 1)
    with pytest.raises(ValueError):
        cv.error_rate[0] = 0.5


def test_parallel_folds_match_sequential(three_class_data):
    X, Y, _ = _xy(three_class_data)
    sequential = cross_validate(X, Y, 2, n_jobs=1)
    parallel = cross_validate(X, Y, 2, n_jobs=4, progress=True)
    np.testing.assert_array_equal(sequential.predictions, parallel.predictions)
    np.testing.assert_array_equal(sequential.confusion, parallel.confusion)
    np.testing.assert_array_equal(sequential.error_rate, parallel.error_rate)


def test_kfold_contiguous_and_interleaved(separable_data):
    X, Y, _ = _xy(separable_data)
    for scheme in (CVScheme.kfold(5), CVScheme.kfold(5, interleaved=True)):
        cv = cross_validate(X, Y, 2, scheme=scheme)
        assert cv.n_folds == 5
        np.testing.assert_allclose(cv.accuracy, [1.0, 1.0])


def test_summary_and_confusion_frames(separable_data):
    X, Y, classes = _xy(separable_data)
    cv = cross_validate(X, Y, 2, classes=classes)

    summary = cv.summary()
    assert summary.index.name == "n_components"
    assert list(summary.index) == [1, 2]
    assert list(summary.columns) == ["misclassified", "error_rate", "balanced_error_rate", "accuracy"]

    frame = cv.confusion_frame()
    assert list(frame.index) == ["Control", "Treatment"]
    assert frame.loc["Control", "Control"] == 5
    assert cv.best_n_components() == 1


# ----------------------------------------------------------------- schemes


def test_loo_split():
    folds = CVScheme.loo().split(4)
    assert len(folds) == 4
    for k, (train, test) in enumerate(folds):
        np.testing.assert_array_equal(test, [k])
        assert k not in train


def test_kfold_split_contiguous():
    folds = CVScheme.kfold(3).split(7)
    np.testing.assert_array_equal(folds[0][1], [0, 1, 2])
    np.testing.assert_array_equal(np.concatenate([te for _, te in folds]), np.arange(7))


def test_kfold_split_interleaved():
    folds = CVScheme.kfold(3, interleaved=True).split(7)
    np.testing.assert_array_equal(folds[0][1], [0, 3, 6])
    np.testing.assert_array_equal(folds[2][1], [2, 5])
    np.testing.assert_array_equal(folds[2][0], [0, 1, 3, 4, 6])


@pytest.mark.parametrize("kwargs", [
    {"kind": "bootstrap"},
    {"kind": "kfold"},
    {"kind": "kfold", "n_folds": 1},
])
def test_bad_scheme(kwargs):
    with pytest.raises(InvalidConfiguration):
        CVScheme(**kwargs)


def test_more_folds_than_samples():
    with pytest.raises(InvalidConfiguration, match="exceeds"):
        CVScheme.kfold(11).split(10)


# ------------------------------------------------------------------ errors


def test_too_few_samples():
    with pytest.raises(InsufficientData, match="at least 3"):
        check_resampling_data(np.array([0, 1]), 2)


def test_singleton_class():
    with pytest.raises(InsufficientData, match=r"\[1\]"):
        check_resampling_data(np.array([0, 0, 0, 1]), 2)


def test_singleton_class_through_cross_validate():
    rng = np.random.RandomState(0)
    X = rng.normal(size=(5, 6))
    Y = encode_labels(["a", "a", "a", "a", "b"]).indicator
    with pytest.raises(InsufficientData):
        cross_validate(X, Y, 1)


def test_response_must_be_indicator(separable_data):
    X, Y, _ = _xy(separable_data)
    with pytest.raises(InvalidInput, match="indicator"):
        cross_validate(X, Y * 2.0, 1)


def test_bad_n_jobs(separable_data):
    X, Y, _ = _xy(separable_data)
    with pytest.raises(InvalidConfiguration, match="n_jobs"):
        cross_validate(X, Y, 1, n_jobs=0)


def test_component_count_beyond_bound(separable_data):
    X, Y, _ = _xy(separable_data)
    with pytest.raises(InvalidConfiguration):
        cross_validate(X, Y, 3)


def test_contiguous_fold_holding_out_a_class(separable_data):
    # 5 Control then 5 Treatment: each half-fold trains on one class only
    X, Y, _ = _xy(separable_data)
    with pytest.raises(InsufficientData, match=r"Fold 0 trains without classes \[0\]"):
        cross_validate(X, Y, 1, scheme=CVScheme.kfold(2))


def test_interleaved_folds_keep_both_classes(separable_data):
    X, Y, _ = _xy(separable_data)
    cv = cross_validate(X, Y, 1, scheme=CVScheme.kfold(2, interleaved=True))
    assert cv.n_folds == 2
    assert cv.accuracy[0] == 1.0


def test_check_fold_classes_names_fold_and_class():
    codes = np.array([0, 0, 1, 1, 2, 2])
    folds = CVScheme.kfold(3).split(6)
    with pytest.raises(InsufficientData, match=r"Fold 0 trains without classes \[0\]"):
        check_fold_classes(codes, folds, 3)
    check_fold_classes(codes, CVScheme.kfold(2, interleaved=True).split(6), 3)
