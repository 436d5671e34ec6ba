# ========================
# src/chartor/__init__.py
# ========================

"""
Chartor Pipeline Package

Core components of the museum-attendance chart pipeline:
- sources: local directory and HTTP data sources
- ingestion: streaming CSV fetcher grouping rows by year
- merging: concurrent fetch and merge by year
- cleaning: whitelist projection and statistics parsing
- postal: city to postal code lookup
- transformation: aggregation by ID, city, museum and department
- charting: Chart.js payloads
- storage: result export
- orchestrator: pipeline coordination
"""

from .errors import ChartorError, FetchError, PostalCodeNotFoundError
from .models import (
    AggregateResult, CleanDataset, CleanRecord, MergedDataset, Stats,
    TimingReport, Totals, YearGroup,
)
from .sources import DataSource, HTTPDataSource, LocalDataSource
from .ingestion import CSVFetcher, year_from_file_name
from .merging import DatasetMerger
from .cleaning import DataCleaner, TagMarkerPredicate, build_predicate
from .postal import PostalCodeLookup
from .transformation import (
    CityAggregator, DepartmentAggregator, IdAggregator, MuseumAggregator,
    aggregate_by_city, aggregate_by_department_async, aggregate_by_id, aggregate_by_museum,
)
from .charting import to_chart_data
from .storage import ResultExporter
from .orchestrator import ChartPipeline, PipelineResult

__all__ = [
    'ChartorError',
    'FetchError',
    'PostalCodeNotFoundError',
    'AggregateResult',
    'CleanDataset',
    'CleanRecord',
    'MergedDataset',
    'Stats',
    'TimingReport',
    'Totals',
    'YearGroup',
    'DataSource',
    'HTTPDataSource',
    'LocalDataSource',
    'CSVFetcher',
    'year_from_file_name',
    'DatasetMerger',
    'DataCleaner',
    'TagMarkerPredicate',
    'build_predicate',
    'PostalCodeLookup',
    'CityAggregator',
    'DepartmentAggregator',
    'IdAggregator',
    'MuseumAggregator',
    'aggregate_by_city',
    'aggregate_by_department_async',
    'aggregate_by_id',
    'aggregate_by_museum',
    'to_chart_data',
    'ResultExporter',
    'ChartPipeline',
    'PipelineResult',
]

__version__ = "1.0.0"
