# ========================
# src/chartor/orchestrator.py
# ========================

"""
Pipeline Orchestrator Module

Runs one Fetch -> Merge -> Clean -> Aggregate pass over the available
dataset files.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from .cleaning import DataCleaner, build_predicate
from .ingestion import CSVFetcher
from .merging import DatasetMerger
from .models import AggregateResult, CleanDataset, TimingReport
from .postal import PostalCodeLookup
from .sources import DataSource, HTTPDataSource, LocalDataSource
from .transformation import (
    CityAggregator, DepartmentAggregator, IdAggregator, MuseumAggregator,
)
from ..utils.config import Config
from ..utils.performance_monitor import monitor_performance

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    cleaned: CleanDataset
    by_id: AggregateResult
    by_city: AggregateResult
    by_museum: AggregateResult
    by_department: Optional[AggregateResult]
    timings: TimingReport

    def aggregates(self) -> List[AggregateResult]:
        results = [self.by_id, self.by_city, self.by_museum]
        if self.by_department is not None:
            results.append(self.by_department)
        return results


def source_from_config(config: Config) -> DataSource:
    """HTTP source when BASE_URL is set, otherwise the local data directory."""
    if config.BASE_URL:
        return HTTPDataSource(config.BASE_URL, timeout=config.FETCH_TIMEOUT)
    return LocalDataSource(config.DATA_DIR)


class ChartPipeline:
    """
    Orchestrates the chart data pipeline.
    Every run starts from scratch; nothing is cached between runs.
    """

    def __init__(self, source: Optional[DataSource] = None, config: Optional[Config] = None):
        """
        Initialize the pipeline.

        Args:
            source (DataSource): Where files are listed and read from;
                derived from the configuration when omitted
            config (Config): Configuration object
        """
        self.config = config or Config()
        self.source = source or source_from_config(self.config)
        self.fetcher = CSVFetcher(self.source)
        self.merger = DatasetMerger(self.fetcher)

        logger.info("ChartPipeline initialized:")
        logger.info(f"  Source: {type(self.source).__name__}")
        logger.info(f"  Selection marker: {self.config.SELECTION_MARKER or '(none)'}")
        logger.info(f"  Department aggregation: {self.config.ENABLE_DEPARTMENT_AGGREGATION}")

    def select_files(self, names: List[str]) -> List[str]:
        """Drop reserved files (the postal code reference) from a file list."""
        marker = self.config.RESERVED_FILE_MARKER
        return [name for name in names if not (marker and marker in name)]

    async def run_async(self) -> PipelineResult:
        """
        Execute the complete pipeline.

        Returns:
            PipelineResult: Cleaned data, aggregates and the timing report

        Raises:
            Whatever stage failed; nothing partial is returned.
        """
        with monitor_performance("ChartPipeline") as monitor:
            try:
                result = await self._run(monitor)
            except Exception as e:
                logger.error(f"Chart pipeline failed: {e}")
                raise

        self._log_final_summary(result)
        return result

    def run(self) -> PipelineResult:
        """Blocking wrapper around run_async()."""
        return asyncio.run(self.run_async())

    async def _run(self, monitor) -> PipelineResult:
        loop = asyncio.get_running_loop()
        files = self.select_files(await loop.run_in_executor(None, self.source.list_files))
        logger.info(f"Data files to load: {files}")

        merged = await self.merger.merge_all_async(files)
        monitor.add_checkpoint('merge', {'years': merged.years()})

        cleaner = DataCleaner(
            predicate=build_predicate(self.config),
            stats_delimiter=self.config.STATS_DELIMITER,
        )
        cleaned = cleaner.clean(merged)
        del merged  # owned by the cleaner output from here on
        monitor.update_progress(cleaner.records_processed)
        monitor.add_checkpoint('clean', cleaner.get_statistics())

        timings = cleaned.timings
        by_id = IdAggregator().aggregate(cleaned)
        by_city = CityAggregator(drop_empty=self.config.DROP_EMPTY_CITY).aggregate(cleaned)
        by_museum = MuseumAggregator().aggregate(cleaned)
        for aggregate in (by_id, by_city, by_museum):
            timings.aggregations[aggregate.name] = aggregate.time_spend

        by_department = None
        if self.config.ENABLE_DEPARTMENT_AGGREGATION:
            lookup = PostalCodeLookup(self.source, self.config.POSTAL_CODE_FILE)
            by_department = await DepartmentAggregator(lookup).aggregate_async(cleaned)
            timings.aggregations[by_department.name] = by_department.time_spend
        monitor.add_checkpoint('aggregate', dict(timings.aggregations))

        return PipelineResult(
            cleaned=cleaned,
            by_id=by_id,
            by_city=by_city,
            by_museum=by_museum,
            by_department=by_department,
            timings=timings,
        )

    def _log_final_summary(self, result: PipelineResult) -> None:
        """Log final pipeline summary."""
        timings = result.timings
        logger.info("=" * 60)
        logger.info("CHART PIPELINE SUMMARY")
        logger.info("=" * 60)
        logger.info(f"Years: {', '.join(sorted(result.cleaned.data)) or '(none)'}")
        logger.info(f"Records: {result.cleaned.record_count():,}")
        logger.info(f"Time load: {timings.time_load:.3f}s")
        logger.info(f"Time merge: {timings.time_merge:.3f}s")
        logger.info(f"Time cleanup: {timings.time_cleanup:.3f}s")
        for name, seconds in timings.aggregations.items():
            logger.info(f"Time for aggregate {name}: {seconds:.3f}s")
        logger.info("=" * 60)
