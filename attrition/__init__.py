"""Core package for the attrition project."""

from .errors import (
    AttritionError,
    MalformedFeatureMatrixError,
    MalformedRecordError,
    ModelNotReadyError,
    TrainingCancelledError,
    TrainingError,
    TrainingInProgressError,
    UnseenCategoryError,
)
from .load import DEFAULT_SCHEMA, EmployeeRecord, RecordSchema, load_records, load_sample_records
from .features import (
    EncodingTable,
    FeatureBundle,
    NormalizationRange,
    UnseenPolicy,
    build_encoding,
    build_feature_bundle,
    encode_label,
    encode_record,
)
from .split import Dataset, split_dataset
from .model import (
    EpochResult,
    TrainedModel,
    TrainingConfig,
    TrainingHistory,
    load_model,
    save_model,
    train_model,
)
from .evaluate import ConfusionCounts, ModelStats, compute_metrics, confusion_counts, evaluate_model, export_stats
from .importance import FeatureImportance, compute_importance, export_importance
from .pipeline import IngestResult, Prediction, compute_importance_for, ingest, predict, train_and_evaluate
from .service import AttritionService, ModelSnapshot, ModelStatus
from .eda import attrition_by_attribute, compute_corpus_summary, write_markdown_summary
from .utils import ensure_directory, get_logger, setup_logging

__all__ = [
    "AttritionError",
    "MalformedFeatureMatrixError",
    "MalformedRecordError",
    "ModelNotReadyError",
    "TrainingCancelledError",
    "TrainingError",
    "TrainingInProgressError",
    "UnseenCategoryError",
    "DEFAULT_SCHEMA",
    "EmployeeRecord",
    "RecordSchema",
    "load_records",
    "load_sample_records",
    "EncodingTable",
    "FeatureBundle",
    "NormalizationRange",
    "UnseenPolicy",
    "build_encoding",
    "build_feature_bundle",
    "encode_label",
    "encode_record",
    "Dataset",
    "split_dataset",
    "EpochResult",
    "TrainedModel",
    "TrainingConfig",
    "TrainingHistory",
    "load_model",
    "save_model",
    "train_model",
    "ConfusionCounts",
    "ModelStats",
    "compute_metrics",
    "confusion_counts",
    "evaluate_model",
    "export_stats",
    "FeatureImportance",
    "compute_importance",
    "export_importance",
    "IngestResult",
    "Prediction",
    "compute_importance_for",
    "ingest",
    "predict",
    "train_and_evaluate",
    "AttritionService",
    "ModelSnapshot",
    "ModelStatus",
    "attrition_by_attribute",
    "compute_corpus_summary",
    "write_markdown_summary",
    "ensure_directory",
    "get_logger",
    "setup_logging",
]
