"""Tests for the feature matrix and sample annotation types."""
import numpy as np
import pandas as pd
import pytest

from msplsda.data.annotation import SampleAnnotation
from msplsda.data.matrix import FeatureMatrix
from msplsda.errors import InvalidInput, PLSDAError


def test_matrix_basic_properties(raw_matrix):
    assert raw_matrix.shape == (6, 6)
    assert raw_matrix.n_features == 6
    assert raw_matrix.n_samples == 6
    assert raw_matrix.feature_ids[0] == "M1"
    assert raw_matrix.sample_ids[-1] == "S6"
    assert raw_matrix.has_missing


def test_matrix_is_read_only(raw_matrix):
    with pytest.raises(ValueError):
        raw_matrix.values[0, 0] = 1.0


def test_matrix_missing_fraction(raw_matrix):
    frac = raw_matrix.missing_fraction()
    np.testing.assert_allclose(frac, [0, 1 / 6, 0.5, 0, 0, 4 / 6])


@pytest.mark.parametrize(
    "values, feature_ids, sample_ids, match",
    [
        (np.ones(3), ["a"], ["s"], "2-D"),
        (np.ones((0, 2)), [], ["s1", "s2"], "empty"),
        (np.ones((2, 2)), ["a"], ["s1", "s2"], "feature ids"),
        (np.ones((2, 2)), ["a", "b"], ["s1"], "sample ids"),
        (np.ones((2, 2)), ["a", "a"], ["s1", "s2"], "Duplicate feature"),
        (np.ones((2, 2)), ["a", "b"], ["s1", "s1"], "Duplicate sample"),
        (np.array([[1.0, np.inf], [0.0, 1.0]]), ["a", "b"], ["s1", "s2"], "infinite"),
    ],
)
def test_matrix_rejects_malformed_input(values, feature_ids, sample_ids, match):
    with pytest.raises(InvalidInput, match=match):
        FeatureMatrix(values, feature_ids, sample_ids)


def test_invalid_input_is_value_error():
    with pytest.raises(ValueError):
        FeatureMatrix(np.ones((2, 2)), ["a", "a"], ["s1", "s2"])
    assert issubclass(InvalidInput, PLSDAError)


def test_subset_features_keeps_order_and_ids(raw_matrix):
    sub = raw_matrix.subset_features(np.array([True, False, False, True, True, False]))
    assert sub.feature_ids == ("M1", "M4", "M5")
    assert sub.sample_ids == raw_matrix.sample_ids
    np.testing.assert_array_equal(sub.values[1], [50.0] * 6)
    # Input untouched
    assert raw_matrix.n_features == 6


def test_subset_features_empty_raises(raw_matrix):
    with pytest.raises(InvalidInput, match="empty"):
        raw_matrix.subset_features(np.zeros(6, dtype=bool))


def test_subset_samples_reorders_columns(raw_matrix):
    sub = raw_matrix.subset_samples(["S3", "S1"])
    assert sub.sample_ids == ("S3", "S1")
    assert sub.values[0, 0] == 900.0
    with pytest.raises(InvalidInput, match="Unknown sample"):
        raw_matrix.subset_samples(["S99"])


def test_samples_by_features_is_transposed_copy(raw_matrix):
    X = raw_matrix.samples_by_features()
    assert X.shape == (6, 6)
    assert X[1, 0] == raw_matrix.values[0, 1]
    X[0, 0] = -1.0
    assert raw_matrix.values[0, 0] == 1000.0


def test_dataframe_round_trip(raw_intensity_frame):
    matrix = FeatureMatrix.from_dataframe(raw_intensity_frame)
    df = matrix.to_dataframe()
    assert list(df.index) == list(raw_intensity_frame.index)
    assert list(df.columns) == list(raw_intensity_frame.columns)
    pd.testing.assert_frame_equal(df, raw_intensity_frame, check_names=False)


def test_from_dataframe_rejects_text_cells():
    df = pd.DataFrame({"S1": [1.0, "abc"], "S2": [2.0, 3.0]}, index=["a", "b"])
    with pytest.raises(InvalidInput, match="non-numeric"):
        FeatureMatrix.from_dataframe(df)


# ---------------------------------------------------------------- annotation


def _annotation_frame():
    return pd.DataFrame({
        "SampleID": ["S1", "S2", "S3", "S4"],
        "Condition": ["Control", "Treatment", "Control", "Treatment"],
        "Batch": [1, 1, 2, 2],
    })


def test_annotation_from_dataframe():
    ann = SampleAnnotation.from_dataframe(_annotation_frame())
    assert len(ann) == 4
    assert ann["S2"] == "Treatment"
    assert "S4" in ann
    assert list(ann.metadata.columns) == ["Batch"]
    assert ann.class_table().to_dict() == {"Control": 2, "Treatment": 2}


def test_annotation_missing_column():
    with pytest.raises(InvalidInput, match="Group"):
        SampleAnnotation.from_dataframe(_annotation_frame(), class_col="Group")


def test_annotation_duplicate_ids():
    df = _annotation_frame()
    df.loc[3, "SampleID"] = "S1"
    with pytest.raises(InvalidInput, match="Duplicate"):
        SampleAnnotation.from_dataframe(df)


def test_annotation_missing_label():
    df = _annotation_frame()
    df.loc[2, "Condition"] = None
    with pytest.raises(InvalidInput, match="S3"):
        SampleAnnotation.from_dataframe(df)


def test_labels_follow_matrix_order_not_annotation_order():
    matrix = FeatureMatrix(np.ones((1, 3)), ["F1"], ["S3", "S1", "S2"])
    ann = SampleAnnotation({"S1": "A", "S2": "B", "S3": "C"})
    assert ann.labels_for(matrix) == ["C", "A", "B"]


def test_labels_for_unannotated_sample_raises():
    matrix = FeatureMatrix(np.ones((1, 3)), ["F1"], ["S1", "S2", "S9"])
    ann = SampleAnnotation({"S1": "A", "S2": "B"})
    with pytest.raises(InvalidInput, match="S9"):
        ann.labels_for(matrix)


def test_labels_for_ignores_extra_annotation_rows(caplog):
    matrix = FeatureMatrix(np.ones((1, 2)), ["F1"], ["S1", "S2"])
    ann = SampleAnnotation({"S1": "A", "S2": "B", "S3": "A"})
    with caplog.at_level("WARNING", logger="msplsda"):
        assert ann.labels_for(matrix) == ["A", "B"]
    assert "S3" in caplog.text
