import numpy as np
import pytest

from attrition.errors import MalformedFeatureMatrixError
from attrition.importance import FeatureImportance, compute_importance, export_importance

from conftest import WeightedModel


@pytest.fixture
def matrix():
    rng = np.random.default_rng(21)
    data = rng.uniform(-1.0, 1.0, size=(300, 4))
    data[:, 3] = 0.25  # constant column
    return data


def test_only_used_features_matter(matrix):
    model = WeightedModel([3.0, 0.5, 0.0, 2.0])
    importance = compute_importance(model, matrix, ["strong", "weak", "unused", "constant"], seed=0)

    scores = importance.as_dict()
    assert importance.features[:2] == ["strong", "weak"]
    assert scores["strong"] > scores["weak"] > 0.0
    assert scores["unused"] == 0.0
    assert scores["constant"] == 0.0
    assert all(score >= 0.0 for _, score in importance)


def test_scores_sorted_descending_with_stable_ties(matrix):
    model = WeightedModel([0.0, 1.0, 0.0, 0.0])
    importance = compute_importance(model, matrix, ["a", "b", "c", "d"], seed=1)
    values = [score for _, score in importance]
    assert values == sorted(values, reverse=True)
    # zero-score features keep their original relative order
    assert importance.features == ["b", "a", "c", "d"]


class RecordingModel(WeightedModel):
    """WeightedModel that keeps a copy of every matrix it scores."""

    def __init__(self, weights):
        super().__init__(weights)
        self.inputs = []

    def predict_proba(self, features):
        self.inputs.append(np.array(features, copy=True))
        return super().predict_proba(features)


def test_sample_is_first_rows_capped(matrix):
    model = RecordingModel([1.0, 1.0, 1.0, 1.0])
    compute_importance(model, matrix, ["a", "b", "c", "d"], sample_size=50, seed=2)
    # one baseline pass plus one pass per feature, all on the capped sample
    assert model.rows_seen == [50] * 5

    head = matrix[:50]
    baseline, *permuted_passes = model.inputs
    np.testing.assert_array_equal(baseline, head)
    for column, seen in enumerate(permuted_passes):
        others = [index for index in range(4) if index != column]
        np.testing.assert_array_equal(seen[:, others], head[:, others])
        np.testing.assert_array_equal(np.sort(seen[:, column]), np.sort(head[:, column]))


def test_small_dataset_uses_every_row(matrix):
    model = WeightedModel([1.0, 0.0, 0.0, 0.0])
    compute_importance(model, matrix[:12], ["a", "b", "c", "d"], seed=3)
    assert set(model.rows_seen) == {12}


def test_input_is_not_modified(matrix):
    before = matrix.copy()
    compute_importance(WeightedModel([1.0, 1.0, 1.0, 1.0]), matrix, ["a", "b", "c", "d"], seed=4)
    np.testing.assert_array_equal(matrix, before)


def test_seed_makes_scores_reproducible(matrix):
    model = WeightedModel([1.0, -2.0, 0.5, 0.0])
    first = compute_importance(model, matrix, ["a", "b", "c", "d"], seed=9)
    second = compute_importance(model, matrix, ["a", "b", "c", "d"], seed=9)
    assert first == second


def test_name_count_must_match(matrix):
    with pytest.raises(MalformedFeatureMatrixError):
        compute_importance(WeightedModel([1.0] * 4), matrix, ["a", "b"])


def test_export_importance(tmp_path):
    importance = FeatureImportance(scores=(("OverTime", 0.2), ("Age", 0.1)))
    path = export_importance(importance, tmp_path)
    assert path.read_text().splitlines() == ["feature,importance", "OverTime,0.2", "Age,0.1"]
