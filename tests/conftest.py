"""Shared fixtures for the attrition test suite."""

from typing import List

import numpy as np
import pytest

from attrition.load import EmployeeRecord, load_sample_records
from attrition.split import Dataset


class WeightedModel:
    """Deterministic logistic scorer: sigmoid(X @ weights + bias)."""

    def __init__(self, weights, bias: float = 0.0):
        self.weights = np.asarray(weights, dtype=float)
        self.bias = bias
        self.rows_seen: List[int] = []

    def predict_proba(self, features):
        X = np.asarray(features, dtype=float)
        self.rows_seen.append(X.shape[0])
        return 1.0 / (1.0 + np.exp(-(X @ self.weights + self.bias)))


class FixedModel:
    """Returns a fixed probability per row regardless of the features."""

    def __init__(self, probabilities):
        self.probabilities = np.asarray(probabilities, dtype=float)

    def predict_proba(self, features):
        return self.probabilities[: len(features)]


@pytest.fixture
def sample_records() -> List[EmployeeRecord]:
    return load_sample_records()


@pytest.fixture
def separable_dataset() -> Dataset:
    rng = np.random.default_rng(7)
    features = rng.uniform(0.0, 1.0, size=(200, 3))
    labels = (features[:, 0] > 0.5).astype(np.int64)
    return Dataset(features=features, labels=labels, feature_names=["signal", "noise_a", "noise_b"])
