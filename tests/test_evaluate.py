import json
import math

import numpy as np
import pytest

from attrition.evaluate import (
    ConfusionCounts,
    compute_metrics,
    confusion_counts,
    evaluate_model,
    export_stats,
)
from attrition.model import TrainingHistory, EpochResult
from attrition.split import Dataset

from conftest import FixedModel


def test_reference_confusion_matrix():
    metrics = compute_metrics(ConfusionCounts(tp=3, fp=1, tn=3, fn=1))
    assert metrics["precision"] == pytest.approx(0.75)
    assert metrics["recall"] == pytest.approx(0.75)
    assert metrics["f1"] == pytest.approx(0.75)
    assert metrics["accuracy"] == pytest.approx(0.75)
    assert metrics["specificity"] == pytest.approx(0.75)


@pytest.mark.parametrize(
    "counts",
    [
        ConfusionCounts(tp=0, fp=0, tn=0, fn=0),
        ConfusionCounts(tp=0, fp=0, tn=5, fn=0),
        ConfusionCounts(tp=0, fp=0, tn=0, fn=4),
        ConfusionCounts(tp=0, fp=3, tn=0, fn=0),
    ],
)
def test_zero_denominators_default_to_zero(counts):
    metrics = compute_metrics(counts)
    for name in ("precision", "recall", "f1", "specificity", "accuracy"):
        assert 0.0 <= metrics[name] <= 1.0
        assert not math.isnan(metrics[name])
    assert metrics["precision"] == 0.0
    assert metrics["f1"] == 0.0


def test_threshold_is_inclusive():
    counts = confusion_counts(np.array([1, 0, 1, 0]), np.array([0.5, 0.5, 0.49, 0.1]))
    assert counts == ConfusionCounts(tp=1, fp=1, tn=1, fn=1)


def test_counts_sum_to_test_size():
    rng = np.random.default_rng(0)
    labels = rng.integers(0, 2, size=37)
    proba = rng.uniform(size=37)
    assert confusion_counts(labels, proba).total == 37


def test_evaluate_model_attaches_history():
    test = Dataset(features=np.zeros((4, 2)), labels=np.array([1, 1, 0, 0]))
    model = FixedModel([0.9, 0.2, 0.7, 0.1])
    history = TrainingHistory()
    history.append(EpochResult(epoch=1, loss=0.6, accuracy=0.5, val_loss=0.6, val_accuracy=0.5))

    stats = evaluate_model(model, test, history)

    assert stats.confusion == ConfusionCounts(tp=1, fp=1, tn=1, fn=1)
    assert stats.accuracy == pytest.approx(0.5)
    assert stats.history is history
    assert stats.loss > 0
    payload = stats.to_dict()
    assert payload["confusion_matrix"] == {"tp": 1, "fp": 1, "tn": 1, "fn": 1}
    assert payload["train_history"]["val_acc"] == [0.5]


def test_empty_test_set_yields_zero_metrics():
    test = Dataset(features=np.zeros((0, 2)), labels=np.zeros(0, dtype=int))
    stats = evaluate_model(FixedModel([]), test)
    assert stats.confusion.total == 0
    assert stats.accuracy == 0.0
    assert math.isnan(stats.loss)
    assert stats.to_dict()["loss"] is None


def test_export_stats_writes_json(tmp_path):
    test = Dataset(features=np.zeros((2, 1)), labels=np.array([1, 0]))
    stats = evaluate_model(FixedModel([0.8, 0.3]), test)
    path = export_stats(stats, tmp_path / "out")
    payload = json.loads(path.read_text())
    assert payload["accuracy"] == 1.0
    assert payload["recall"] == 1.0
