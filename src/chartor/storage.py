# ========================
# src/chartor/storage.py
# ========================

"""
Data Storage Module

Exports pipeline results to JSON and CSV files for offline use.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Dict, List

from .models import AggregateResult, Totals

logger = logging.getLogger(__name__)


class ResultExporter:
    """
    Saves the aggregates and timing report of a pipeline run.
    """

    def __init__(self, output_dir: str = "data/processed"):
        """
        Initialize the exporter.

        Args:
            output_dir (str): Directory to save output files
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"ResultExporter initialized with output directory: {self.output_dir}")

    def save_all(self, result) -> Dict[str, str]:
        """
        Save every aggregate plus the timing report.

        Args:
            result (PipelineResult): Output of ChartPipeline.run()

        Returns:
            dict: Mapping of output name to saved file path
        """
        saved_files = {}

        try:
            for aggregate in result.aggregates():
                saved_files[aggregate.name] = self.save_json(aggregate)
                if aggregate.name != 'by_id':
                    saved_files[f"{aggregate.name}_csv"] = self.save_totals_csv(aggregate)

            saved_files['timings'] = self._write_json(
                self.output_dir / "timings.json", result.timings.to_dict()
            )

            logger.info(f"All results saved successfully to {len(saved_files)} files")
            return saved_files

        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving results: {e}")
            raise

    def save_json(self, aggregate: AggregateResult) -> str:
        """Save one aggregate as nested JSON."""
        return self._write_json(self.output_dir / f"{aggregate.name}.json", aggregate.to_dict())

    def save_totals_csv(self, aggregate: AggregateResult) -> str:
        """Save a summing aggregate as one row per (key, year)."""
        file_path = self.output_dir / f"{aggregate.name}.csv"
        headers = ['key', 'year', 'payant', 'gratuit', 'total']
        rows: List[dict] = []
        for key, per_year in aggregate.data.items():
            for year, totals in per_year.items():
                if not isinstance(totals, Totals):
                    raise TypeError(f"'{aggregate.name}' does not hold totals")
                rows.append({
                    'key': key, 'year': year,
                    'payant': totals.payant, 'gratuit': totals.gratuit, 'total': totals.total,
                })

        rows.sort(key=lambda x: (x['key'], x['year']))
        self._write_csv(file_path, headers, rows)
        return str(file_path)

    def _write_csv(self, file_path: Path, headers: List[str], rows: List[dict]) -> None:
        with open(file_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=headers)
            writer.writeheader()
            writer.writerows(rows)
        logger.info(f"Saved {len(rows)} rows to {file_path}")

    def _write_json(self, file_path: Path, payload: dict) -> str:
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, ensure_ascii=False, default=str)
        logger.info(f"Saved {file_path}")
        return str(file_path)
