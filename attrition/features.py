"""Feature encoding helpers.

Encoding tables and normalization ranges are built once from the full corpus,
before any train/test split, and reused for every later encode call so that
training, evaluation and inference vectors share the same semantics.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import MalformedRecordError, UnseenCategoryError
from .load import DEFAULT_SCHEMA, FEATURE_ATTRIBUTES, LEFT_VALUE, RecordSchema
from .utils import get_logger

LOGGER = get_logger("features")

UNKNOWN_TOKEN = "__unknown__"


class UnseenPolicy(str, Enum):
    """What to do with a categorical value the encoding table never saw."""

    ERROR = "error"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class EncodingTable:
    """Per-attribute mapping of observed category to index, in first-seen order."""

    mappings: Mapping[str, Mapping[str, int]]
    reserve_unknown: bool = False

    @property
    def attributes(self) -> Tuple[str, ...]:
        return tuple(self.mappings)

    def categories(self, attribute: str) -> List[str]:
        """Observed values of ``attribute`` ordered by index."""
        mapping = self.mappings[attribute]
        return [value for value in sorted(mapping, key=mapping.__getitem__) if value != UNKNOWN_TOKEN]

    def unknown_index(self, attribute: str) -> Optional[int]:
        return self.mappings[attribute].get(UNKNOWN_TOKEN)

    def index_of(self, attribute: str, value: str, policy: UnseenPolicy = UnseenPolicy.ERROR) -> int:
        mapping = self.mappings[attribute]
        key = str(value).strip()
        if key in mapping and key != UNKNOWN_TOKEN:
            return mapping[key]
        if UnseenPolicy(policy) is UnseenPolicy.UNKNOWN:
            reserved = self.unknown_index(attribute)
            if reserved is not None:
                LOGGER.debug("Mapped unseen %s=%r to the unknown bucket", attribute, key)
                return reserved
        raise UnseenCategoryError(attribute, key)

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {attribute: dict(mapping) for attribute, mapping in self.mappings.items()}


@dataclass(frozen=True)
class NormalizationRange:
    """Per-attribute (min, max) observed over the corpus."""

    bounds: Mapping[str, Tuple[float, float]]

    @property
    def attributes(self) -> Tuple[str, ...]:
        return tuple(self.bounds)

    def scale(self, attribute: str, value: float) -> float:
        """Min-max scale ``value``; results outside [0, 1] are kept as-is."""
        low, high = self.bounds[attribute]
        span = high - low
        return (float(value) - low) / (span if span != 0 else 1.0)

    def to_dict(self) -> Dict[str, Tuple[float, float]]:
        return dict(self.bounds)


def build_encoding(
    corpus: Sequence[Mapping[str, Any]],
    categorical_attrs: Sequence[str],
    numeric_attrs: Sequence[str],
    *,
    reserve_unknown: bool = False,
) -> Tuple[EncodingTable, NormalizationRange]:
    """Build the encoding table and normalization ranges from the full corpus."""
    if len(corpus) == 0:
        raise MalformedRecordError("Cannot build encodings from an empty corpus")

    mappings: Dict[str, Mapping[str, int]] = {}
    for attribute in categorical_attrs:
        mapping: Dict[str, int] = {}
        for record in corpus:
            value = str(record[attribute]).strip()
            if value not in mapping:
                mapping[value] = len(mapping)
        if reserve_unknown:
            mapping[UNKNOWN_TOKEN] = len(mapping)
        mappings[attribute] = MappingProxyType(mapping)

    bounds: Dict[str, Tuple[float, float]] = {}
    for attribute in numeric_attrs:
        column = np.array([float(record[attribute]) for record in corpus], dtype=np.float64)
        bounds[attribute] = (float(column.min()), float(column.max()))

    LOGGER.info(
        "Built encodings for %d categorical and %d numeric attributes over %d records",
        len(mappings),
        len(bounds),
        len(corpus),
    )
    table = EncodingTable(mappings=MappingProxyType(mappings), reserve_unknown=reserve_unknown)
    return table, NormalizationRange(bounds=MappingProxyType(bounds))


def encode_record(
    record: Mapping[str, Any],
    table: EncodingTable,
    ranges: NormalizationRange,
    attribute_order: Sequence[str],
    *,
    unseen: UnseenPolicy = UnseenPolicy.ERROR,
) -> np.ndarray:
    """Convert one record into a feature vector following ``attribute_order``."""
    missing = [attribute for attribute in attribute_order if attribute not in record]
    if missing:
        raise MalformedRecordError("Record is missing required attributes", missing)

    vector = np.empty(len(attribute_order), dtype=np.float64)
    for position, attribute in enumerate(attribute_order):
        value = record[attribute]
        if attribute in table.mappings:
            vector[position] = table.index_of(attribute, value, unseen)
        elif attribute in ranges.bounds:
            vector[position] = ranges.scale(attribute, value)
        else:
            raise ValueError(f"Attribute '{attribute}' has no encoding or normalization range")
    return vector


def encode_label(value: Any, positive: str = LEFT_VALUE) -> int:
    return 1 if str(value).strip() == positive else 0


@dataclass(frozen=True)
class FeatureBundle:
    features: np.ndarray
    labels: np.ndarray
    feature_names: List[str]
    table: EncodingTable
    ranges: NormalizationRange

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame(self.features, columns=self.feature_names)
        frame["label"] = self.labels
        return frame


def build_feature_bundle(
    records: Sequence[Mapping[str, Any]],
    schema: RecordSchema = DEFAULT_SCHEMA,
    feature_attributes: Sequence[str] = FEATURE_ATTRIBUTES,
    *,
    reserve_unknown: bool = False,
) -> FeatureBundle:
    """Encode every record of the corpus and collect its labels."""
    if schema.label is None:
        raise ValueError("Schema has no label attribute; cannot build training labels")
    unknown = [name for name in feature_attributes if name not in schema.attributes]
    if unknown:
        raise ValueError(f"Feature attributes not in schema: {unknown}")

    categorical = [name for name in feature_attributes if schema.is_categorical(name)]
    numeric = [name for name in feature_attributes if not schema.is_categorical(name)]
    table, ranges = build_encoding(records, categorical, numeric, reserve_unknown=reserve_unknown)

    order = list(feature_attributes)
    features = np.vstack([encode_record(record, table, ranges, order) for record in records])
    labels = np.array(
        [encode_label(record[schema.label], schema.positive_label) for record in records],
        dtype=np.int64,
    )
    LOGGER.info("Encoded %d records into %d features (%d leavers)", len(records), len(order), int(labels.sum()))
    return FeatureBundle(features=features, labels=labels, feature_names=order, table=table, ranges=ranges)
