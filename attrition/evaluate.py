"""Held-out evaluation: confusion matrix and derived classification metrics."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
from sklearn.metrics import confusion_matrix, log_loss

from .model import DECISION_THRESHOLD, ProbabilityModel, TrainingHistory
from .split import Dataset
from .utils import ensure_directory, get_logger

LOGGER = get_logger("evaluate")


@dataclass(frozen=True)
class ConfusionCounts:
    tp: int
    fp: int
    tn: int
    fn: int

    @property
    def total(self) -> int:
        return self.tp + self.fp + self.tn + self.fn

    def as_dict(self) -> Dict[str, int]:
        return {"tp": self.tp, "fp": self.fp, "tn": self.tn, "fn": self.fn}


def _ratio(numerator: float, denominator: float) -> float:
    return float(numerator) / denominator if denominator else 0.0


@dataclass(frozen=True)
class ModelStats:
    accuracy: float
    precision: float
    recall: float
    f1: float
    specificity: float
    confusion: ConfusionCounts
    loss: float
    history: Optional[TrainingHistory] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "accuracy": self.accuracy,
            "precision": self.precision,
            "recall": self.recall,
            "f1": self.f1,
            "specificity": self.specificity,
            "loss": None if math.isnan(self.loss) else self.loss,
            "confusion_matrix": self.confusion.as_dict(),
        }
        if self.history is not None:
            payload["train_history"] = self.history.as_dict()
        return payload


def confusion_counts(
    y_true: np.ndarray,
    proba: np.ndarray,
    threshold: float = DECISION_THRESHOLD,
) -> ConfusionCounts:
    """Count predictions at ``threshold`` against the actual labels (1 = left)."""
    y_true = np.asarray(y_true, dtype=np.int64)
    y_pred = (np.asarray(proba, dtype=np.float64) >= threshold).astype(np.int64)
    if len(y_true) == 0:
        return ConfusionCounts(tp=0, fp=0, tn=0, fn=0)
    cm = confusion_matrix(y_true, y_pred, labels=[0, 1])
    return ConfusionCounts(tp=int(cm[1, 1]), fp=int(cm[0, 1]), tn=int(cm[0, 0]), fn=int(cm[1, 0]))


def compute_metrics(counts: ConfusionCounts) -> Dict[str, float]:
    """Derive scalar metrics; any zero denominator yields 0 for that metric."""
    precision = _ratio(counts.tp, counts.tp + counts.fp)
    recall = _ratio(counts.tp, counts.tp + counts.fn)
    return {
        "accuracy": _ratio(counts.tp + counts.tn, counts.total),
        "precision": precision,
        "recall": recall,
        "f1": _ratio(2 * precision * recall, precision + recall),
        "specificity": _ratio(counts.tn, counts.tn + counts.fp),
    }


def evaluate_model(
    model: ProbabilityModel,
    test: Dataset,
    history: TrainingHistory | None = None,
    threshold: float = DECISION_THRESHOLD,
) -> ModelStats:
    """Score ``model`` on the held-out set and attach the training history."""
    if len(test) == 0:
        LOGGER.warning("Test set is empty; all metrics default to 0")
        counts = ConfusionCounts(tp=0, fp=0, tn=0, fn=0)
        loss = math.nan
    else:
        proba = np.asarray(model.predict_proba(test.features), dtype=np.float64)
        counts = confusion_counts(test.labels, proba, threshold)
        loss = float(log_loss(test.labels, np.clip(proba, 0.0, 1.0), labels=[0, 1]))

    metrics = compute_metrics(counts)
    if history is not None and len(history) and len(test):
        final_val = history.val_accuracy[-1]
        if not math.isclose(final_val, metrics["accuracy"], abs_tol=1e-9):
            LOGGER.warning(
                "Recomputed accuracy %.4f differs from final validation accuracy %.4f",
                metrics["accuracy"],
                final_val,
            )

    LOGGER.info(
        "Evaluation on %d rows: accuracy=%.3f precision=%.3f recall=%.3f f1=%.3f",
        len(test),
        metrics["accuracy"],
        metrics["precision"],
        metrics["recall"],
        metrics["f1"],
    )
    return ModelStats(confusion=counts, loss=loss, history=history, **metrics)


def export_stats(stats: ModelStats, out_dir: Path | str) -> Path:
    """Write the stats to ``model_stats.json`` inside ``out_dir``."""
    output_path = Path(out_dir) / "model_stats.json"
    ensure_directory(output_path.parent)
    output_path.write_text(json.dumps(stats.to_dict(), indent=2))
    LOGGER.info("Model stats exported to %s", output_path)
    return output_path
