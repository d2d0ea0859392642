"""Exploratory summaries of the employee corpus."""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np
import pandas as pd

from .load import LABEL_ATTRIBUTE, LEFT_VALUE
from .utils import ensure_directory, get_logger

LOGGER = get_logger("eda")

AGE_BANDS: Sequence[tuple[str, float]] = (
    ("18-25", 25),
    ("26-35", 35),
    ("36-45", 45),
    ("46-55", 55),
    ("56+", float("inf")),
)
INCOME_BANDS: Sequence[tuple[str, float]] = (
    ("<5K", 5000),
    ("5K-10K", 10000),
    ("10K-15K", 15000),
    ("15K-20K", 20000),
    (">20K", float("inf")),
)


def _as_frame(records: Sequence[Mapping[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame([dict(record) for record in records])


def _safe_mean(series: pd.Series) -> float:
    clean = pd.to_numeric(series, errors="coerce").dropna()
    return float(clean.mean()) if not clean.empty else float("nan")


def compute_corpus_summary(
    records: Sequence[Mapping[str, Any]],
    *,
    label: str = LABEL_ATTRIBUTE,
    positive: str = LEFT_VALUE,
) -> Dict[str, Any]:
    """Headline numbers for the corpus: headcount, attrition and averages."""
    df = _as_frame(records)
    total = len(df)
    if total == 0:
        LOGGER.warning("Corpus is empty; summary is blank")
        return {"total_employees": 0, "attrition_count": 0, "attrition_rate": 0.0, "top_departments": []}

    left = int((df[label].astype(str) == positive).sum()) if label in df else 0
    departments = Counter(df["Department"].astype(str)) if "Department" in df else Counter()
    # Counter.most_common keeps first-seen order for equal counts.
    top = [{"name": name, "count": count} for name, count in departments.most_common(3)]

    return {
        "total_employees": total,
        "attrition_count": left,
        "attrition_rate": left / total,
        "avg_age": _safe_mean(df.get("Age", pd.Series(dtype=float))),
        "avg_years_at_company": _safe_mean(df.get("YearsAtCompany", pd.Series(dtype=float))),
        "avg_monthly_income": _safe_mean(df.get("MonthlyIncome", pd.Series(dtype=float))),
        "top_departments": top,
    }


def attrition_by_attribute(
    records: Sequence[Mapping[str, Any]],
    attribute: str,
    *,
    label: str = LABEL_ATTRIBUTE,
    positive: str = LEFT_VALUE,
) -> pd.DataFrame:
    """Per-value headcount, leavers and attrition rate (%), in first-seen order."""
    df = _as_frame(records)
    if df.empty:
        return pd.DataFrame(columns=["value", "total", "attrition", "attrition_rate"])
    if attribute not in df.columns:
        msg = f"Unknown attribute '{attribute}'"
        raise KeyError(msg)

    keys = df[attribute].astype(str)
    left = (df[label].astype(str) == positive).astype(int)
    grouped = (
        pd.DataFrame({"value": keys, "left": left})
        .groupby("value", sort=False)["left"]
        .agg(total="size", attrition="sum")
        .reset_index()
    )
    grouped["attrition_rate"] = grouped["attrition"] / grouped["total"] * 100
    return grouped


def _band_counts(values: pd.Series, bands: Sequence[tuple[str, float]], *, inclusive: bool) -> Dict[str, int]:
    counts = {name: 0 for name, _ in bands}
    for value in pd.to_numeric(values, errors="coerce").dropna():
        for name, upper in bands:
            if (value <= upper) if inclusive else (value < upper):
                counts[name] += 1
                break
    return counts


def age_bands(records: Sequence[Mapping[str, Any]]) -> Dict[str, int]:
    df = _as_frame(records)
    return _band_counts(df.get("Age", pd.Series(dtype=float)), AGE_BANDS, inclusive=True)


def income_bands(records: Sequence[Mapping[str, Any]]) -> Dict[str, int]:
    df = _as_frame(records)
    return _band_counts(df.get("MonthlyIncome", pd.Series(dtype=float)), INCOME_BANDS, inclusive=False)


def _fmt(value: float | int | None, *, percent: bool = False, digits: int = 2) -> str:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return "n/a"
    factor = 100 if percent else 1
    suffix = "%" if percent else ""
    return f"{value * factor:.{digits}f}{suffix}"


def write_markdown_summary(summary: Mapping[str, Any], path: Path | str) -> Path:
    output_path = Path(path)
    ensure_directory(output_path.parent)
    lines: List[str] = [
        "# Employee corpus summary",
        "",
        f"- Employees: {summary.get('total_employees', 0)}",
        f"- Attrition: {summary.get('attrition_count', 0)} "
        f"({_fmt(summary.get('attrition_rate'), percent=True, digits=1)})",
        f"- Average age: {_fmt(summary.get('avg_age'), digits=1)}",
        f"- Average years at company: {_fmt(summary.get('avg_years_at_company'), digits=1)}",
        f"- Average monthly income: {_fmt(summary.get('avg_monthly_income'), digits=0)}",
        "",
        "## Top departments",
        "",
    ]
    for department in summary.get("top_departments", []):
        lines.append(f"- {department['name']}: {department['count']}")
    output_path.write_text("\n".join(lines) + "\n")
    LOGGER.info("Corpus summary written to %s", output_path)
    return output_path
