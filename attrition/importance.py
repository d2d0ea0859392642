"""Permutation importance for a trained attrition model."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import MalformedFeatureMatrixError
from .model import ProbabilityModel
from .split import as_feature_matrix
from .utils import ensure_directory, get_logger, scoped_matrix

LOGGER = get_logger("importance")

DEFAULT_SAMPLE_SIZE = 1000


@dataclass(frozen=True)
class FeatureImportance:
    """(feature, score) pairs sorted by descending score."""

    scores: Tuple[Tuple[str, float], ...]

    def __iter__(self) -> Iterator[Tuple[str, float]]:
        return iter(self.scores)

    def __len__(self) -> int:
        return len(self.scores)

    @property
    def features(self) -> List[str]:
        return [name for name, _ in self.scores]

    def as_dict(self) -> dict:
        return dict(self.scores)

    def top(self, k: int) -> List[Tuple[str, float]]:
        return list(self.scores[:k])

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(list(self.scores), columns=["feature", "importance"])


def compute_importance(
    model: ProbabilityModel,
    train_features: Sequence[Sequence[float]] | np.ndarray,
    feature_names: Sequence[str],
    *,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    seed: Optional[int] = None,
) -> FeatureImportance:
    """Mean absolute prediction shift when each column is shuffled in turn.

    The sample is the first ``sample_size`` rows of ``train_features``. Only
    the permuted column changes between the baseline and the permuted pass.
    """
    matrix = as_feature_matrix(train_features)
    if matrix.shape[1] != len(feature_names):
        raise MalformedFeatureMatrixError(
            f"{len(feature_names)} feature names for {matrix.shape[1]} columns"
        )
    if sample_size < 1:
        raise ValueError(f"sample_size must be >= 1, got {sample_size}")

    rng = np.random.default_rng(seed)
    n_rows = min(sample_size, matrix.shape[0])
    scores: List[Tuple[str, float]] = []

    with scoped_matrix(matrix[:n_rows]) as sample:
        baseline = np.asarray(model.predict_proba(sample), dtype=np.float64)
        for column, name in enumerate(feature_names):
            with scoped_matrix(sample) as permuted:
                permuted[:, column] = rng.permutation(permuted[:, column])
                shifted = np.asarray(model.predict_proba(permuted), dtype=np.float64)
                scores.append((name, float(np.mean(np.abs(baseline - shifted)))))

    # sorted() is stable, so ties keep the original feature order.
    ranked = sorted(scores, key=lambda item: item[1], reverse=True)
    LOGGER.info("Computed permutation importance for %d features over %d rows", len(ranked), n_rows)
    return FeatureImportance(scores=tuple(ranked))


def export_importance(importance: FeatureImportance, out_dir: Path | str) -> Path:
    """Persist the ranked importances to ``feature_importance.csv``."""
    output_path = Path(out_dir) / "feature_importance.csv"
    ensure_directory(output_path.parent)
    importance.to_frame().to_csv(output_path, index=False)
    LOGGER.info("Feature importances saved to %s", output_path)
    return output_path
