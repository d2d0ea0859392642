"""Record schema and corpus loading for the employee attrition data."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Type

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model, model_validator

from .errors import MalformedRecordError
from .utils import get_logger, have_pyarrow, resolve_path

LOGGER = get_logger("load")

LABEL_ATTRIBUTE = "Attrition"
LEFT_VALUE = "Yes"
SAMPLE_CORPUS_PATH = resolve_path("data", "employee_sample.csv")

CATEGORICAL_ATTRIBUTES: Tuple[str, ...] = (
    "Attrition",
    "BusinessTravel",
    "Department",
    "EducationField",
    "Gender",
    "JobRole",
    "MaritalStatus",
    "Over18",
    "OverTime",
)
NUMERIC_ATTRIBUTES: Tuple[str, ...] = (
    "Age",
    "DailyRate",
    "DistanceFromHome",
    "Education",
    "EmployeeCount",
    "EmployeeNumber",
    "EnvironmentSatisfaction",
    "HourlyRate",
    "JobInvolvement",
    "JobLevel",
    "JobSatisfaction",
    "MonthlyIncome",
    "MonthlyRate",
    "NumCompaniesWorked",
    "PercentSalaryHike",
    "PerformanceRating",
    "RelationshipSatisfaction",
    "StandardHours",
    "StockOptionLevel",
    "TotalWorkingYears",
    "TrainingTimesLastYear",
    "WorkLifeBalance",
    "YearsAtCompany",
    "YearsInCurrentRole",
    "YearsSinceLastPromotion",
    "YearsWithCurrManager",
)

# Attributes fed to the model, in vector order.
FEATURE_ATTRIBUTES: Tuple[str, ...] = (
    "Age",
    "BusinessTravel",
    "DailyRate",
    "Department",
    "DistanceFromHome",
    "Education",
    "EducationField",
    "EnvironmentSatisfaction",
    "Gender",
    "JobInvolvement",
    "JobLevel",
    "JobRole",
    "JobSatisfaction",
    "MaritalStatus",
    "MonthlyIncome",
    "NumCompaniesWorked",
    "OverTime",
    "PercentSalaryHike",
    "PerformanceRating",
    "RelationshipSatisfaction",
    "StockOptionLevel",
    "TotalWorkingYears",
    "TrainingTimesLastYear",
    "WorkLifeBalance",
    "YearsAtCompany",
    "YearsInCurrentRole",
    "YearsSinceLastPromotion",
    "YearsWithCurrManager",
)


@dataclass(frozen=True)
class RecordSchema:
    """Names the categorical and numeric attributes of a record and its label."""

    categorical: Tuple[str, ...]
    numeric: Tuple[str, ...]
    label: Optional[str] = LABEL_ATTRIBUTE
    positive_label: str = LEFT_VALUE

    def __post_init__(self) -> None:
        overlap = sorted(set(self.categorical) & set(self.numeric))
        if overlap:
            raise ValueError(f"Attributes declared both categorical and numeric: {overlap}")
        if self.label is not None and self.label not in self.categorical:
            raise ValueError(f"Label attribute '{self.label}' must be categorical")

    @property
    def attributes(self) -> Tuple[str, ...]:
        return self.categorical + self.numeric

    def is_categorical(self, attribute: str) -> bool:
        return attribute in self.categorical

    def restrict(self, attributes: Iterable[str]) -> "RecordSchema":
        """Return the sub-schema covering only ``attributes``."""
        wanted = list(attributes)
        unknown = [name for name in wanted if name not in self.attributes]
        if unknown:
            raise ValueError(f"Attributes not in schema: {unknown}")
        label = self.label if self.label in wanted else None
        return RecordSchema(
            categorical=tuple(name for name in self.categorical if name in wanted),
            numeric=tuple(name for name in self.numeric if name in wanted),
            label=label,
            positive_label=self.positive_label,
        )


DEFAULT_SCHEMA = RecordSchema(categorical=CATEGORICAL_ATTRIBUTES, numeric=NUMERIC_ATTRIBUTES)


def _is_blank(value: Any) -> bool:
    if value is None or value is pd.NA:
        return True
    return isinstance(value, float) and math.isnan(value)


class RecordFields(BaseModel):
    """Base for the per-schema record models built by :func:`record_model`."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_blank_values(cls, data: Any) -> Any:
        # Blank cells count as absent so they are reported as missing.
        if isinstance(data, Mapping):
            return {key: value for key, value in data.items() if not _is_blank(value)}
        return data


@lru_cache(maxsize=None)
def record_model(schema: RecordSchema = DEFAULT_SCHEMA) -> Type[RecordFields]:
    """Return the pydantic model validating records of ``schema``."""
    definitions: Dict[str, Any] = {name: (str, ...) for name in schema.categorical}
    definitions.update({name: (float, Field(allow_inf_nan=False)) for name in schema.numeric})
    return create_model("EmployeeFields", __base__=RecordFields, **definitions)


def _as_record_error(exc: ValidationError) -> MalformedRecordError:
    errors = exc.errors()
    attributes = list(dict.fromkeys(str(error["loc"][0]) for error in errors if error["loc"]))
    if all(error["type"] == "missing" for error in errors):
        return MalformedRecordError("Record is missing required attributes", attributes)
    details = "; ".join(f"{error['loc'][0]}: {error['msg']}" for error in errors if error["loc"])
    return MalformedRecordError(f"Record has invalid attributes ({details})", attributes)


@dataclass(frozen=True)
class EmployeeRecord(Mapping[str, Any]):
    """Immutable attribute mapping validated against a RecordSchema."""

    fields: RecordFields
    schema: RecordSchema = field(default=DEFAULT_SCHEMA, repr=False, compare=False)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], schema: RecordSchema = DEFAULT_SCHEMA) -> "EmployeeRecord":
        try:
            fields = record_model(schema).model_validate(dict(raw))
        except ValidationError as exc:
            raise _as_record_error(exc) from None
        return cls(fields=fields, schema=schema)

    def __getitem__(self, key: str) -> Any:
        if key not in type(self.fields).model_fields:
            raise KeyError(key)
        return getattr(self.fields, key)

    def __iter__(self) -> Iterator[str]:
        return iter(type(self.fields).model_fields)

    def __len__(self) -> int:
        return len(type(self.fields).model_fields)

    @property
    def label(self) -> Optional[str]:
        if self.schema.label is None:
            return None
        return self[self.schema.label]

    @property
    def has_left(self) -> bool:
        return self.label == self.schema.positive_label

    def as_dict(self) -> Dict[str, Any]:
        return self.fields.model_dump()


def records_from_mappings(
    raw_records: Iterable[Mapping[str, Any]],
    schema: RecordSchema = DEFAULT_SCHEMA,
) -> List[EmployeeRecord]:
    """Validate raw attribute mappings into immutable records."""
    records: List[EmployeeRecord] = []
    for index, raw in enumerate(raw_records):
        try:
            records.append(EmployeeRecord.from_mapping(raw, schema))
        except MalformedRecordError as exc:
            raise MalformedRecordError(f"Row {index}: {exc.reason}", exc.attributes) from exc
    LOGGER.debug("Validated %d records", len(records))
    return records


def records_from_frame(df: pd.DataFrame, schema: RecordSchema = DEFAULT_SCHEMA) -> List[EmployeeRecord]:
    missing = [column for column in schema.attributes if column not in df.columns]
    if missing:
        raise MalformedRecordError("Corpus is missing required columns", missing)
    return records_from_mappings(df.to_dict(orient="records"), schema)


def _read_with_pyarrow(path: Path) -> pd.DataFrame:
    import pyarrow.csv as pv

    table = pv.read_csv(path)
    return table.to_pandas(strings_to_categorical=False)


def _read_with_pandas(path: Path) -> pd.DataFrame:
    return pd.read_csv(path, keep_default_na=True)


def _read_csv(path: Path) -> pd.DataFrame:
    LOGGER.info("Reading %s", path.name)
    if have_pyarrow():
        try:
            return _read_with_pyarrow(path)
        except Exception as exc:  # pragma: no cover - defensive fallback
            LOGGER.warning("PyArrow failed for %s; falling back to pandas", path.name, exc_info=exc)
    return _read_with_pandas(path)


def load_records(path: str | Path, schema: RecordSchema = DEFAULT_SCHEMA) -> List[EmployeeRecord]:
    """Load and validate every row of the CSV corpus at ``path``."""
    csv_path = Path(path)
    if not csv_path.exists():
        msg = f"Corpus file not found: {csv_path}"
        raise FileNotFoundError(msg)
    df = _read_csv(csv_path)
    records = records_from_frame(df, schema)
    LOGGER.info("Loaded %d records from %s", len(records), csv_path.name)
    return records


def load_sample_records(schema: RecordSchema = DEFAULT_SCHEMA) -> List[EmployeeRecord]:
    """Load the bundled 8-row sample corpus."""
    return load_records(SAMPLE_CORPUS_PATH, schema)
