"""Train/test partitioning of encoded datasets."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .errors import MalformedFeatureMatrixError
from .utils import get_logger

LOGGER = get_logger("split")

DEFAULT_TRAIN_FRACTION = 0.8


def as_feature_matrix(rows: Sequence[Sequence[float]] | np.ndarray) -> np.ndarray:
    """Return ``rows`` as a 2-D float matrix, rejecting ragged or empty input."""
    if isinstance(rows, np.ndarray):
        if rows.ndim != 2:
            raise MalformedFeatureMatrixError(f"Feature matrix must be 2-D, got shape {rows.shape}")
        if rows.shape[0] == 0 or rows.shape[1] == 0:
            raise MalformedFeatureMatrixError(f"Feature matrix is empty (shape {rows.shape})")
        return rows.astype(np.float64, copy=False)

    rows = list(rows)
    if not rows:
        raise MalformedFeatureMatrixError("Feature matrix has no rows")
    lengths = {len(row) for row in rows}
    if len(lengths) != 1:
        raise MalformedFeatureMatrixError(f"Feature vectors have inconsistent lengths: {sorted(lengths)}")
    if 0 in lengths:
        raise MalformedFeatureMatrixError("Feature vectors are empty")
    return np.asarray(rows, dtype=np.float64)


@dataclass(frozen=True)
class Dataset:
    """Feature matrix with aligned binary labels (1 = left)."""

    features: np.ndarray
    labels: np.ndarray
    feature_names: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.features.ndim != 2:
            raise MalformedFeatureMatrixError(f"Feature matrix must be 2-D, got shape {self.features.shape}")
        if len(self.labels) != self.features.shape[0]:
            raise MalformedFeatureMatrixError(
                f"{self.features.shape[0]} feature rows but {len(self.labels)} labels"
            )
        if self.feature_names and len(self.feature_names) != self.features.shape[1]:
            raise MalformedFeatureMatrixError(
                f"{len(self.feature_names)} feature names for {self.features.shape[1]} columns"
            )

    @classmethod
    def from_rows(
        cls,
        rows: Sequence[Sequence[float]],
        labels: Sequence[int],
        feature_names: Sequence[str] = (),
    ) -> "Dataset":
        return cls(
            features=as_feature_matrix(rows),
            labels=np.asarray(labels, dtype=np.int64),
            feature_names=list(feature_names),
        )

    def __len__(self) -> int:
        return int(self.features.shape[0])

    @property
    def n_features(self) -> int:
        return int(self.features.shape[1])

    def subset(self, indices: Sequence[int] | np.ndarray) -> "Dataset":
        index = np.asarray(indices, dtype=np.int64)
        return Dataset(
            features=self.features[index],
            labels=self.labels[index],
            feature_names=list(self.feature_names),
        )


def split_indices(
    n_rows: int,
    train_fraction: float = DEFAULT_TRAIN_FRACTION,
    seed: Optional[int] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Shuffle ``range(n_rows)`` and cut the permutation at ``floor(train_fraction * n)``."""
    if not 0.0 <= train_fraction <= 1.0:
        raise ValueError(f"train_fraction must lie in [0, 1], got {train_fraction}")
    rng = np.random.default_rng(seed)
    order = rng.permutation(n_rows)
    n_train = int(math.floor(train_fraction * n_rows))
    return order[:n_train], order[n_train:]


def split_dataset(
    dataset: Dataset,
    train_fraction: float = DEFAULT_TRAIN_FRACTION,
    seed: Optional[int] = None,
) -> Tuple[Dataset, Dataset]:
    train_idx, test_idx = split_indices(len(dataset), train_fraction, seed)
    train = dataset.subset(train_idx)
    test = dataset.subset(test_idx)
    LOGGER.info("Split %d rows into %d train / %d test (seed=%s)", len(dataset), len(train), len(test), seed)
    return train, test
