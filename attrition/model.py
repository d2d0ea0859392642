"""Model training utilities for attrition prediction."""

from __future__ import annotations

import math
import threading
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Protocol, Sequence, Tuple

import joblib
import numpy as np
from sklearn.metrics import accuracy_score, log_loss
from sklearn.neural_network import MLPClassifier

from .errors import MalformedFeatureMatrixError, TrainingCancelledError, TrainingError
from .split import Dataset, as_feature_matrix
from .utils import ensure_directory, get_logger, scoped_matrix

LOGGER = get_logger("model")

DECISION_THRESHOLD = 0.5
DEFAULT_MODEL_PATH = Path("out/model_bundle.joblib")

EpochObserver = Callable[["EpochResult"], None]


class ProbabilityModel(Protocol):
    """Anything that maps a feature matrix to per-row attrition probabilities."""

    def predict_proba(self, features: np.ndarray) -> np.ndarray: ...


@dataclass(frozen=True)
class TrainingConfig:
    hidden_layers: Tuple[int, ...] = (32, 16)
    activation: str = "relu"
    learning_rate: float = 0.001
    epochs: int = 50
    batch_size: int = 32
    alpha: float = 0.0
    seed: Optional[int] = 42

    def __post_init__(self) -> None:
        layers = tuple(int(width) for width in self.hidden_layers)
        if not layers or any(width < 1 for width in layers):
            raise ValueError(f"hidden_layers must be positive widths, got {self.hidden_layers}")
        object.__setattr__(self, "hidden_layers", layers)
        if self.epochs < 1:
            raise ValueError(f"epochs must be >= 1, got {self.epochs}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if not self.learning_rate > 0:
            raise ValueError(f"learning_rate must be positive, got {self.learning_rate}")

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "TrainingConfig":
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ValueError(f"Unknown training options: {unknown}")
        return cls(**dict(options))

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["hidden_layers"] = list(self.hidden_layers)
        return payload


@dataclass(frozen=True)
class EpochResult:
    epoch: int
    loss: float
    accuracy: float
    val_loss: float
    val_accuracy: float


@dataclass
class TrainingHistory:
    """Per-epoch metric series; every list has one entry per completed epoch."""

    loss: List[float] = field(default_factory=list)
    accuracy: List[float] = field(default_factory=list)
    val_loss: List[float] = field(default_factory=list)
    val_accuracy: List[float] = field(default_factory=list)

    def append(self, result: EpochResult) -> None:
        self.loss.append(result.loss)
        self.accuracy.append(result.accuracy)
        self.val_loss.append(result.val_loss)
        self.val_accuracy.append(result.val_accuracy)

    def __len__(self) -> int:
        return len(self.loss)

    def as_dict(self) -> Dict[str, List[float]]:
        return {
            "loss": list(self.loss),
            "acc": list(self.accuracy),
            "val_loss": list(self.val_loss),
            "val_acc": list(self.val_accuracy),
        }


@dataclass
class TrainedModel:
    estimator: MLPClassifier
    feature_names: List[str]
    config: TrainingConfig

    def predict_proba(self, features: Sequence[Sequence[float]] | np.ndarray) -> np.ndarray:
        """Return the probability of attrition for every row of ``features``."""
        matrix = as_feature_matrix(features)
        if matrix.shape[1] != len(self.feature_names):
            raise MalformedFeatureMatrixError(
                f"Model expects {len(self.feature_names)} features, got {matrix.shape[1]}"
            )
        return self.estimator.predict_proba(matrix)[:, 1]

    def predict_one(self, vector: Sequence[float] | np.ndarray) -> float:
        return float(self.predict_proba([list(vector)])[0])


def build_estimator(config: TrainingConfig, n_samples: int) -> MLPClassifier:
    return MLPClassifier(
        hidden_layer_sizes=config.hidden_layers,
        activation=config.activation,
        solver="adam",
        alpha=config.alpha,
        learning_rate_init=config.learning_rate,
        batch_size=max(1, min(config.batch_size, n_samples)),
        shuffle=True,
        random_state=config.seed,
    )


def _score(estimator: MLPClassifier, X: np.ndarray, y: np.ndarray) -> Tuple[float, float]:
    if len(y) == 0:
        return math.nan, math.nan
    proba = estimator.predict_proba(X)
    loss = float(log_loss(y, proba, labels=[0, 1]))
    accuracy = float(accuracy_score(y, (proba[:, 1] >= DECISION_THRESHOLD).astype(int)))
    return loss, accuracy


def _validate_inputs(train: Dataset, test: Dataset) -> None:
    if len(train) == 0 or train.n_features == 0:
        raise MalformedFeatureMatrixError(f"Training feature matrix is empty (shape {train.features.shape})")
    if test.n_features != train.n_features:
        raise MalformedFeatureMatrixError(
            f"Train rows have {train.n_features} features but test rows have {test.n_features}"
        )
    for name, dataset in (("train", train), ("test", test)):
        if not np.isfinite(dataset.features).all():
            raise MalformedFeatureMatrixError(f"{name} feature matrix contains non-finite values")
        values = set(np.unique(dataset.labels).tolist())
        if not values.issubset({0, 1}):
            raise MalformedFeatureMatrixError(f"{name} labels must be binary 0/1, found {sorted(values)}")


def iter_training_epochs(
    estimator: MLPClassifier,
    train_x: np.ndarray,
    train_y: np.ndarray,
    test_x: np.ndarray,
    test_y: np.ndarray,
    epochs: int,
) -> Iterator[EpochResult]:
    """Fit one pass per epoch and yield the resulting train/validation metrics."""
    for epoch in range(1, epochs + 1):
        estimator.partial_fit(train_x, train_y, classes=[0, 1])
        loss, accuracy = _score(estimator, train_x, train_y)
        val_loss, val_accuracy = _score(estimator, test_x, test_y)
        yield EpochResult(
            epoch=epoch,
            loss=loss,
            accuracy=accuracy,
            val_loss=val_loss,
            val_accuracy=val_accuracy,
        )


def train_model(
    train: Dataset,
    test: Dataset,
    config: TrainingConfig | None = None,
    *,
    observer: EpochObserver | None = None,
    cancel_event: threading.Event | None = None,
) -> Tuple[TrainedModel, TrainingHistory]:
    """Fit a feed-forward classifier, validating against ``test`` after every epoch."""
    config = config or TrainingConfig()
    _validate_inputs(train, test)
    if len(test) == 0:
        LOGGER.warning("Validation set is empty; validation metrics will be NaN")

    estimator = build_estimator(config, len(train))
    history = TrainingHistory()
    train_y = train.labels.astype(np.int64)
    test_y = test.labels.astype(np.int64)
    LOGGER.info(
        "Training %s network on %d rows for %d epochs",
        "x".join(str(width) for width in config.hidden_layers),
        len(train),
        config.epochs,
    )
    if cancel_event is not None and cancel_event.is_set():
        raise TrainingCancelledError(0)
    try:
        with scoped_matrix(train.features) as train_x, scoped_matrix(test.features) as test_x:
            for result in iter_training_epochs(estimator, train_x, train_y, test_x, test_y, config.epochs):
                history.append(result)
                LOGGER.debug(
                    "Epoch %d: loss = %.4f, accuracy = %.4f, val_loss = %.4f, val_accuracy = %.4f",
                    result.epoch,
                    result.loss,
                    result.accuracy,
                    result.val_loss,
                    result.val_accuracy,
                )
                if observer is not None:
                    observer(result)
                if cancel_event is not None and cancel_event.is_set() and result.epoch < config.epochs:
                    raise TrainingCancelledError(result.epoch)
    except TrainingError:
        raise
    except Exception as exc:
        LOGGER.error("Training failed: %s", exc)
        raise TrainingError(f"Training failed: {exc}") from exc

    names = list(train.feature_names) or [f"f{index}" for index in range(train.n_features)]
    LOGGER.info("Training finished after %d epochs (final loss %.4f)", len(history), history.loss[-1])
    return TrainedModel(estimator=estimator, feature_names=names, config=config), history


def save_model(bundle: TrainedModel, path: Path | str = DEFAULT_MODEL_PATH) -> Path:
    output_path = Path(path)
    ensure_directory(output_path.parent)
    joblib.dump(bundle, output_path)
    LOGGER.info("Model bundle saved to %s", output_path)
    return output_path


def load_model(path: Path | str = DEFAULT_MODEL_PATH) -> TrainedModel:
    model_path = Path(path)
    if not model_path.exists():
        msg = f"Model artifact not found: {model_path}"
        raise FileNotFoundError(msg)
    bundle = joblib.load(model_path)
    if not isinstance(bundle, TrainedModel):
        msg = f"{model_path} does not contain a trained attrition model"
        raise TypeError(msg)
    LOGGER.info("Loaded model bundle from %s", model_path)
    return bundle
