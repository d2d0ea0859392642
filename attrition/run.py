"""Command-line entrypoint stitching together the attrition workflow."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

import pandas as pd

from .eda import compute_corpus_summary, write_markdown_summary
from .errors import AttritionError
from .evaluate import export_stats
from .features import UnseenPolicy
from .importance import export_importance
from .load import SAMPLE_CORPUS_PATH, load_records
from .model import TrainingConfig, save_model
from .service import AttritionService
from .split import DEFAULT_TRAIN_FRACTION
from .utils import ensure_directory, get_logger, setup_logging

LOGGER = get_logger("run")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Employee attrition training pipeline")
    parser.add_argument(
        "--data",
        type=Path,
        default=SAMPLE_CORPUS_PATH,
        help="CSV corpus of employee records (defaults to the bundled sample)",
    )
    parser.add_argument("--out_dir", type=Path, required=True, help="Directory for outputs")
    parser.add_argument("--seed", type=int, default=42, help="Random seed for splitting and training")
    parser.add_argument("--epochs", type=int, default=50, help="Number of training epochs")
    parser.add_argument(
        "--train_fraction",
        type=float,
        default=DEFAULT_TRAIN_FRACTION,
        help="Share of rows used for training; the rest is held out",
    )
    parser.add_argument(
        "--unseen_policy",
        choices=[policy.value for policy in UnseenPolicy],
        default=UnseenPolicy.ERROR.value,
        help="How prediction treats categories missing from the encoding table",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity",
    )
    return parser.parse_args(argv)


def _console_summary(service: AttritionService) -> None:
    snapshot = service.snapshot()
    stats = snapshot.stats
    LOGGER.info(
        "Accuracy=%.3f | Precision=%.3f Recall=%.3f F1=%.3f Specificity=%.3f",
        stats.accuracy,
        stats.precision,
        stats.recall,
        stats.f1,
        stats.specificity,
    )
    LOGGER.info("Confusion matrix: %s", stats.confusion.as_dict())
    LOGGER.info(
        "Top attrition factors:\n%s",
        snapshot.importance.to_frame().head(5).to_string(index=False, float_format=lambda x: f"{x:.4f}"),
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(getattr(logging, args.log_level.upper(), logging.INFO))

    out_dir = ensure_directory(args.out_dir.resolve())
    unseen = UnseenPolicy(args.unseen_policy)

    try:
        LOGGER.info("Loading corpus from %s", args.data)
        records = load_records(args.data)

        LOGGER.info("Writing corpus summary")
        summary = compute_corpus_summary(records)
        write_markdown_summary(summary, out_dir / "eda_summary.md")

        config = TrainingConfig(epochs=args.epochs, seed=args.seed)
        service = AttritionService(
            records,
            config,
            train_fraction=args.train_fraction,
            unseen=unseen,
        )
        with service:
            LOGGER.info("Training model")
            snapshot = service.retrain()

            LOGGER.info("Exporting outputs")
            export_stats(snapshot.stats, out_dir)
            export_importance(snapshot.importance, out_dir)
            save_model(snapshot.model, out_dir / "model_bundle.joblib")
            _console_summary(service)
    except (AttritionError, FileNotFoundError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        LOGGER.error("Pipeline failed: %s", exc)
        return 1

    LOGGER.info("Pipeline complete")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
