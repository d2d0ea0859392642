"""Boundary operations consumed by dashboards, services and the CLI."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .errors import ModelNotReadyError
from .evaluate import ModelStats, evaluate_model
from .features import EncodingTable, NormalizationRange, UnseenPolicy, build_feature_bundle, encode_record
from .importance import DEFAULT_SAMPLE_SIZE, FeatureImportance, compute_importance
from .load import DEFAULT_SCHEMA, FEATURE_ATTRIBUTES, EmployeeRecord, RecordSchema, records_from_mappings
from .model import DECISION_THRESHOLD, EpochObserver, TrainedModel, TrainingConfig, train_model
from .split import DEFAULT_TRAIN_FRACTION, Dataset, split_dataset
from .utils import get_logger

LOGGER = get_logger("pipeline")


@dataclass(frozen=True)
class IngestResult:
    table: EncodingTable
    ranges: NormalizationRange
    dataset: Dataset
    records: Tuple[EmployeeRecord, ...]
    schema: RecordSchema = DEFAULT_SCHEMA

    @property
    def feature_names(self) -> List[str]:
        return list(self.dataset.feature_names)


@dataclass(frozen=True)
class TrainingOutcome:
    model: TrainedModel
    stats: ModelStats
    train_set: Dataset
    test_set: Dataset


@dataclass(frozen=True)
class Prediction:
    probability: float
    will_leave: bool


def ingest(
    raw_records: Iterable[Mapping[str, Any]],
    schema: RecordSchema = DEFAULT_SCHEMA,
    feature_attributes: Sequence[str] = FEATURE_ATTRIBUTES,
    *,
    reserve_unknown: bool = False,
) -> IngestResult:
    """Validate raw records and build encodings plus the encoded dataset."""
    raw = list(raw_records)
    if all(isinstance(item, EmployeeRecord) for item in raw):
        records = raw
    else:
        records = records_from_mappings(raw, schema)

    bundle = build_feature_bundle(records, schema, feature_attributes, reserve_unknown=reserve_unknown)
    dataset = Dataset(features=bundle.features, labels=bundle.labels, feature_names=bundle.feature_names)
    return IngestResult(
        table=bundle.table,
        ranges=bundle.ranges,
        dataset=dataset,
        records=tuple(records),
        schema=schema,
    )


def train_and_evaluate(
    dataset: Dataset,
    config: TrainingConfig | None = None,
    *,
    train_fraction: float = DEFAULT_TRAIN_FRACTION,
    split_seed: Optional[int] = None,
    observer: EpochObserver | None = None,
    cancel_event: threading.Event | None = None,
) -> TrainingOutcome:
    """Split, train and score one model; nothing is shared with earlier runs."""
    config = config or TrainingConfig()
    seed = config.seed if split_seed is None else split_seed
    train_set, test_set = split_dataset(dataset, train_fraction, seed)
    model, history = train_model(train_set, test_set, config, observer=observer, cancel_event=cancel_event)
    stats = evaluate_model(model, test_set, history)
    return TrainingOutcome(model=model, stats=stats, train_set=train_set, test_set=test_set)


def predict(
    model: TrainedModel | None,
    table: EncodingTable,
    ranges: NormalizationRange,
    partial_record: Mapping[str, Any],
    attribute_order: Sequence[str] | None = None,
    *,
    schema: RecordSchema = DEFAULT_SCHEMA,
    unseen: UnseenPolicy = UnseenPolicy.ERROR,
    threshold: float = DECISION_THRESHOLD,
) -> Prediction:
    """Score a single employee; every attribute in the order must be supplied."""
    if model is None:
        raise ModelNotReadyError()
    order = list(attribute_order or model.feature_names)
    record = EmployeeRecord.from_mapping(partial_record, schema.restrict(order))
    vector = encode_record(record, table, ranges, order, unseen=unseen)
    probability = float(np.asarray(model.predict_proba(vector[np.newaxis, :]))[0])
    return Prediction(probability=probability, will_leave=probability >= threshold)


def compute_importance_for(
    model: TrainedModel | None,
    train_dataset: Dataset,
    *,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    seed: Optional[int] = None,
) -> FeatureImportance:
    if model is None:
        raise ModelNotReadyError()
    names = train_dataset.feature_names or model.feature_names
    return compute_importance(model, train_dataset.features, names, sample_size=sample_size, seed=seed)
