"""
Beat Forecast Pipeline Script
Builds the beat-day panel from an incident snapshot and compares count models
"""

import argparse
import logging
import sys
from pathlib import Path

import pandas as pd

from beat_forecast.datasets.crime.ingest import CrimeFileIngester
from beat_forecast.pipeline import run_pipeline
from beat_forecast.shared.config import get_config
from beat_forecast.shared.errors import NoCandidateSucceeded

LOG_FORMATS = {
    "text": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "json": '{"time": "%(asctime)s", "logger": "%(name)s", "level": "%(levelname)s", "message": "%(message)s"}',
}

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build the beat-day panel and compare count models")
    parser.add_argument("--input", help="CSV or Parquet incident snapshot (default: data.input_path)")
    parser.add_argument("--output-dir", help="Directory for panel, summary and ranking (default: data.output_dir)")
    parser.add_argument("--environment", choices=["dev", "prod"], help="Configuration environment")
    parser.add_argument("--execution-date", help="Run date in YYYY-MM-DD format (default: today)")
    return parser.parse_args()


def write_frame(df: pd.DataFrame, output_dir: Path, name: str, fmt: str) -> Path:
    """Write a frame as parquet or csv and return its path."""
    path = output_dir / f"{name}.{fmt}"
    if fmt == "parquet":
        df.to_parquet(path, index=False)
    else:
        df.to_csv(path, index=False)
    logger.info(f"Wrote {len(df)} rows to {path}")
    return path


def main() -> int:
    args = parse_args()
    config = get_config(args.environment)

    logging.basicConfig(
        level=config.logging.level,
        format=LOG_FORMATS[config.logging.format],
        handlers=[logging.StreamHandler()],
    )

    input_path = args.input or config.data.input_path
    output_dir = Path(args.output_dir or config.data.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    ingester = CrimeFileIngester(input_path, config)
    ingestion = ingester.run(args.execution_date or pd.Timestamp.today().strftime("%Y-%m-%d"))
    if not ingestion.success:
        logger.error(f"Ingestion failed: {ingestion.error_message}")
        return 1

    try:
        result = run_pipeline(ingester.get_data(), config, ingestion.execution_date)
    except NoCandidateSucceeded as e:
        logger.error(str(e), extra={"failures": e.failures})
        return 1

    if not result.success:
        logger.error(f"Pipeline failed: {result.error_message}")
        return 1

    formats = config.data.formats
    write_frame(result.panel, output_dir, "panel", formats.get("panel", "parquet"))
    write_frame(result.summary, output_dir, "incident_summary", formats.get("summary", "parquet"))
    write_frame(result.comparison.ranking, output_dir, "model_ranking", formats.get("ranking", "csv"))

    print("\n=== Model Ranking ===")
    print(result.comparison.ranking.to_string(index=False))

    if result.comparison.failures:
        print("\nFailed candidates:")
        for name, reason in result.comparison.failures.items():
            print(f"  {name}: {reason}")

    print("\nIssues:")
    for issue_type, count in result.issue_counts().items():
        print(f"  {issue_type}: {count}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
