import numpy as np
import pytest

from attrition.errors import MalformedFeatureMatrixError
from attrition.split import Dataset, split_dataset, split_indices


def _dataset(n_rows: int) -> Dataset:
    features = np.arange(n_rows * 2, dtype=float).reshape(n_rows, 2)
    labels = np.arange(n_rows) % 2
    return Dataset(features=features, labels=labels, feature_names=["a", "b"])


def test_eight_rows_split_six_two():
    train, test = split_dataset(_dataset(8), 0.8, seed=1)
    assert len(train) == 6
    assert len(test) == 2


@pytest.mark.parametrize("n_rows", [0, 1, 7, 8, 101])
def test_indices_are_disjoint_and_cover_everything(n_rows):
    train_idx, test_idx = split_indices(n_rows, 0.8, seed=3)
    assert len(train_idx) == int(np.floor(0.8 * n_rows))
    assert set(train_idx).isdisjoint(test_idx)
    assert sorted([*train_idx, *test_idx]) == list(range(n_rows))


def test_rows_keep_their_labels():
    dataset = _dataset(10)
    train, test = split_dataset(dataset, 0.5, seed=11)
    for part in (train, test):
        for row, label in zip(part.features, part.labels):
            original = int(row[0] // 2)
            assert dataset.labels[original] == label
    assert train.feature_names == ["a", "b"]


def test_split_is_reproducible_with_seed():
    first = split_indices(50, 0.8, seed=5)
    second = split_indices(50, 0.8, seed=5)
    other = split_indices(50, 0.8, seed=6)
    np.testing.assert_array_equal(first[0], second[0])
    assert not np.array_equal(first[0], other[0])


def test_fraction_out_of_bounds():
    with pytest.raises(ValueError):
        split_dataset(_dataset(4), 1.5)


def test_ragged_rows_are_rejected():
    with pytest.raises(MalformedFeatureMatrixError, match="inconsistent lengths"):
        Dataset.from_rows([[1.0, 2.0], [3.0]], [0, 1])


def test_empty_rows_are_rejected():
    with pytest.raises(MalformedFeatureMatrixError):
        Dataset.from_rows([], [])


def test_label_count_must_match():
    with pytest.raises(MalformedFeatureMatrixError):
        Dataset(features=np.zeros((3, 2)), labels=np.zeros(2))
