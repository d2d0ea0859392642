"""Owner of the current attrition model and its lifecycle.

A single service instance holds the ingested corpus, the current model with
its stats and importances, and a status flag. Retraining runs one at a time;
the new model, stats and importances become visible together, in one
assignment, only once the whole run has succeeded.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional

from .errors import AttritionError, ModelNotReadyError, TrainingError, TrainingInProgressError
from .evaluate import ModelStats
from .features import EncodingTable, NormalizationRange, UnseenPolicy
from .importance import DEFAULT_SAMPLE_SIZE, FeatureImportance
from .model import EpochObserver, TrainedModel, TrainingConfig
from .pipeline import IngestResult, Prediction, compute_importance_for, ingest, predict, train_and_evaluate
from .split import DEFAULT_TRAIN_FRACTION
from .utils import get_logger

LOGGER = get_logger("service")


class ModelStatus(str, Enum):
    UNLOADED = "unloaded"
    TRAINING = "training"
    READY = "ready"


@dataclass(frozen=True)
class ModelSnapshot:
    """Everything produced by one successful training run."""

    model: TrainedModel
    stats: ModelStats
    importance: FeatureImportance
    table: EncodingTable
    ranges: NormalizationRange
    feature_names: List[str]
    trained_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AttritionService:
    def __init__(
        self,
        data: IngestResult | Iterable[Mapping[str, Any]],
        config: TrainingConfig | None = None,
        *,
        train_fraction: float = DEFAULT_TRAIN_FRACTION,
        unseen: UnseenPolicy = UnseenPolicy.ERROR,
        importance_sample_size: int = DEFAULT_SAMPLE_SIZE,
    ) -> None:
        self._data = data if isinstance(data, IngestResult) else ingest(data)
        self.config = config or TrainingConfig()
        self.train_fraction = train_fraction
        self.unseen = UnseenPolicy(unseen)
        self.importance_sample_size = importance_sample_size

        # _state_lock guards the fields below; _train_slot admits one run at a time.
        self._state_lock = threading.Lock()
        self._train_slot = threading.Lock()
        self._status = ModelStatus.UNLOADED
        self._snapshot: Optional[ModelSnapshot] = None
        self._cancel_event: Optional[threading.Event] = None
        self._last_error: Optional[BaseException] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    def __enter__(self) -> "AttritionService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    @property
    def data(self) -> IngestResult:
        return self._data

    @property
    def status(self) -> ModelStatus:
        with self._state_lock:
            return self._status

    @property
    def is_training(self) -> bool:
        return self.status is ModelStatus.TRAINING

    @property
    def last_error(self) -> Optional[BaseException]:
        with self._state_lock:
            return self._last_error

    def snapshot(self) -> ModelSnapshot:
        """Return the current model bundle or raise ModelNotReadyError."""
        with self._state_lock:
            current = self._snapshot
        if current is None:
            raise ModelNotReadyError()
        return current

    def retrain(
        self,
        config: TrainingConfig | None = None,
        *,
        observer: EpochObserver | None = None,
    ) -> ModelSnapshot:
        """Train synchronously; raises TrainingInProgressError if a run is active."""
        if not self._train_slot.acquire(blocking=False):
            raise TrainingInProgressError("A training run is already in progress")
        cancel_event = self._begin_run()
        try:
            return self._run(config or self.config, observer, cancel_event)
        finally:
            self._train_slot.release()

    def start_retrain(
        self,
        config: TrainingConfig | None = None,
        *,
        observer: EpochObserver | None = None,
    ) -> "Future[ModelSnapshot]":
        """Train on the background worker and return a Future for the snapshot."""
        if not self._train_slot.acquire(blocking=False):
            raise TrainingInProgressError("A training run is already in progress")
        run_config = config or self.config
        # Visible as TRAINING and cancellable before the worker picks the job up.
        cancel_event = self._begin_run()

        def _job() -> ModelSnapshot:
            try:
                return self._run(run_config, observer, cancel_event)
            finally:
                self._train_slot.release()

        try:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="attrition-train")
            return self._executor.submit(_job)
        except Exception as exc:
            self._end_failed_run(exc)
            self._train_slot.release()
            raise

    def cancel(self) -> bool:
        """Ask the running training job to stop; returns False if none is running."""
        with self._state_lock:
            event = self._cancel_event
        if event is None:
            return False
        event.set()
        LOGGER.info("Cancellation requested for the running training job")
        return True

    def predict(self, partial_record: Mapping[str, Any]) -> Prediction:
        current = self.snapshot()
        return predict(
            current.model,
            current.table,
            current.ranges,
            partial_record,
            current.feature_names,
            schema=self._data.schema,
            unseen=self.unseen,
        )

    def feature_importance(self) -> FeatureImportance:
        return self.snapshot().importance

    def stats(self) -> ModelStats:
        return self.snapshot().stats

    def shutdown(self, wait: bool = True) -> None:
        self.cancel()
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def _begin_run(self) -> threading.Event:
        cancel_event = threading.Event()
        with self._state_lock:
            self._status = ModelStatus.TRAINING
            self._cancel_event = cancel_event
        return cancel_event

    def _end_failed_run(self, exc: BaseException) -> None:
        with self._state_lock:
            self._status = ModelStatus.READY if self._snapshot is not None else ModelStatus.UNLOADED
            self._cancel_event = None
            self._last_error = exc

    def _run(
        self,
        config: TrainingConfig,
        observer: EpochObserver | None,
        cancel_event: threading.Event,
    ) -> ModelSnapshot:
        try:
            outcome = train_and_evaluate(
                self._data.dataset,
                config,
                train_fraction=self.train_fraction,
                observer=observer,
                cancel_event=cancel_event,
            )
            importance = compute_importance_for(
                outcome.model,
                outcome.train_set,
                sample_size=self.importance_sample_size,
                seed=config.seed,
            )
        except Exception as exc:
            self._end_failed_run(exc)
            LOGGER.warning("Training run did not complete; keeping the previous model: %s", exc)
            if isinstance(exc, AttritionError):
                raise
            raise TrainingError(f"Training failed: {exc}") from exc

        snapshot = ModelSnapshot(
            model=outcome.model,
            stats=outcome.stats,
            importance=importance,
            table=self._data.table,
            ranges=self._data.ranges,
            feature_names=list(outcome.model.feature_names),
        )
        with self._state_lock:
            self._snapshot = snapshot
            self._status = ModelStatus.READY
            self._cancel_event = None
            self._last_error = None
        LOGGER.info("New model is current (accuracy %.3f)", snapshot.stats.accuracy)
        return snapshot
