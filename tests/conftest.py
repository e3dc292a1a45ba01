"""Pytest configuration and shared fixtures."""
import logging

import numpy as np
import pandas as pd
import pytest

from msplsda.data.matrix import FeatureMatrix


def _ids(prefix, n):
    return [f"{prefix}{i + 1}" for i in range(n)]


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo setup_logging() so caplog sees package records in every test."""
    yield
    logger = logging.getLogger("msplsda")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def temp_output_dir(tmp_path):
    """Create temporary output directory for tests."""
    output = tmp_path / "outputs"
    output.mkdir()
    return output


@pytest.fixture
def separable_data():
    """
    10 samples (5 Control, 5 Treatment) x 20 features.

    F1 is 10 in Control and 0 in Treatment, F2 the other way round;
    F3..F20 are small Gaussian noise.
    """
    rng = np.random.RandomState(0)
    n_per_class, n_features = 5, 20
    labels = ["Control"] * n_per_class + ["Treatment"] * n_per_class

    values = rng.normal(0.0, 0.5, size=(n_features, 2 * n_per_class))
    values[0] = [10.0] * n_per_class + [0.0] * n_per_class
    values[1] = [0.0] * n_per_class + [10.0] * n_per_class

    matrix = FeatureMatrix(values, _ids("F", n_features), _ids("S", 2 * n_per_class))
    return matrix, labels


@pytest.fixture
def noise_data():
    """40 samples (20 per class) x 50 features of pure Gaussian noise."""
    rng = np.random.RandomState(1)
    n, p = 40, 50
    labels = ["A", "B"] * (n // 2)
    matrix = FeatureMatrix(rng.normal(size=(p, n)), _ids("F", p), _ids("S", n))
    return matrix, labels


@pytest.fixture
def three_class_data():
    """
    15 samples in 3 classes x 12 features.

    F1 rises low < mid < high, F2 marks the mid class; the rest is noise.
    """
    rng = np.random.RandomState(2)
    labels = ["low"] * 5 + ["mid"] * 5 + ["high"] * 5
    values = rng.normal(0.0, 0.3, size=(12, 15))
    values[0] += [0.0] * 5 + [3.0] * 5 + [8.0] * 5
    values[1, 5:10] += 2.0
    matrix = FeatureMatrix(values, _ids("F", 12), _ids("S", 15))
    return matrix, labels


@pytest.fixture
def raw_intensity_frame():
    """
    Raw MS intensities, 6 features x 6 samples, with missing cells.

    M1: complete
    M2: 1/6 missing -> imputed
    M3: 3/6 missing -> dropped at the default 0.5 threshold
    M4: complete, constant
    M5: complete
    M6: 4/6 missing -> dropped
    """
    nan = np.nan
    data = {
        "S1": [1000.0, 200.0, nan, 50.0, 3000.0, nan],
        "S2": [1200.0, nan, 10.0, 50.0, 100.0, nan],
        "S3": [900.0, 260.0, nan, 50.0, 2500.0, 5.0],
        "S4": [1500.0, 300.0, 12.0, 50.0, 200.0, nan],
        "S5": [1100.0, 180.0, nan, 50.0, 2800.0, nan],
        "S6": [1300.0, 240.0, 14.0, 50.0, 150.0, 7.0],
    }
    return pd.DataFrame(data, index=pd.Index(["M1", "M2", "M3", "M4", "M5", "M6"], name="feature"))


@pytest.fixture
def raw_matrix(raw_intensity_frame):
    return FeatureMatrix.from_dataframe(raw_intensity_frame)
