# ========================
# src/chartor/cleaning.py
# ========================

"""
Data Cleaning Module

Projects raw CSV rows onto CleanRecord, parses the embedded statistics
string and applies the optional row selection rule.
"""

import logging
import unicodedata
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .models import (
    CLEAN_FIELDS, CleanDataset, CleanRecord, MergedDataset, RawRow, Stats, TimingReport,
)
from ..utils.performance_monitor import stopwatch

logger = logging.getLogger(__name__)

RowPredicate = Callable[[RawRow], bool]

STATS_KEYS = ('payant', 'gratuit')


def remove_accent(value: str) -> str:
    """Strip diacritics: 'Musée' -> 'Musee'."""
    decomposed = unicodedata.normalize('NFKD', value)
    return ''.join(char for char in decomposed if not unicodedata.combining(char))


class TagMarkerPredicate:
    """
    Keeps a row when one of the given fields contains the marker, ignoring
    case and accents.
    """

    def __init__(self, marker: str, fields: Iterable[str] = ('tags',)):
        if not marker or not marker.strip():
            raise ValueError("The selection marker is empty.")
        self.marker = remove_accent(marker.strip()).casefold()
        self.fields = tuple(fields)
        if not self.fields:
            raise ValueError("The selection predicate needs at least one field.")

    def __call__(self, row: RawRow) -> bool:
        for field_name in self.fields:
            value = row.get(field_name)
            if value and self.marker in remove_accent(value).casefold():
                return True
        return False

    def __repr__(self) -> str:
        return f"TagMarkerPredicate(marker={self.marker!r}, fields={self.fields!r})"


def build_predicate(config) -> Optional[RowPredicate]:
    """Selection rule from configuration; None keeps every row."""
    marker = (getattr(config, 'SELECTION_MARKER', '') or '').strip()
    if not marker:
        return None
    return TagMarkerPredicate(marker, getattr(config, 'SELECTION_FIELDS', None) or ('tags',))


class DataCleaner:
    """
    Turns the merged, year-keyed raw rows into CleanRecords.
    Cleaning its own output again changes nothing.
    """

    def __init__(self, predicate: Optional[RowPredicate] = None, stats_delimiter: str = ';'):
        """
        Initialize the data cleaner.

        Args:
            predicate (callable): Optional rule deciding which raw rows are kept
            stats_delimiter (str): Separator between ``key:value`` segments
        """
        if not stats_delimiter or stats_delimiter == ':':
            raise ValueError(f"Invalid statistics delimiter: '{stats_delimiter}'")
        self.predicate = predicate
        self.stats_delimiter = stats_delimiter
        self.records_processed = 0
        self.records_dropped = 0
        logger.debug(f"DataCleaner initialized (predicate={predicate!r}, delimiter={stats_delimiter!r})")

    def clean(self, dataset: Union[MergedDataset, CleanDataset]) -> CleanDataset:
        """
        Clean every row of every year group.

        Args:
            dataset: Output of the merger, or a CleanDataset to pass through

        Returns:
            CleanDataset: Records per year plus the timing report

        Raises:
            TypeError: dataset is None or of an unknown type
        """
        if dataset is None:
            raise TypeError("Cannot clean data. The data is None.")

        if isinstance(dataset, CleanDataset):
            return self._reclean(dataset)

        if not isinstance(dataset, MergedDataset):
            raise TypeError(f"Cannot clean data of type '{type(dataset).__name__}'.")

        timings = TimingReport(time_load=dataset.time_load, time_merge=dataset.time_merge)
        data: Dict[str, List[CleanRecord]] = {}

        with stopwatch() as watch:
            for year, group in dataset.groups.items():
                timings.time_load_each_entry[year] = group.time
                records = []
                for row in group.data:
                    record = self.clean_record(row)
                    if record is not None:
                        records.append(record)
                data[year] = records

        timings.time_cleanup = watch.elapsed
        result = CleanDataset(data=data, timings=timings)
        logger.info(
            f"Cleaned {self.records_processed} rows: {result.record_count()} kept, "
            f"{self.records_dropped} dropped ({timings.time_cleanup:.3f}s)"
        )
        return result

    def _reclean(self, dataset: CleanDataset) -> CleanDataset:
        data = {
            year: [self.clean_record(record) for record in records]
            for year, records in dataset.data.items()
        }
        timings = TimingReport(
            time_cleanup=dataset.timings.time_cleanup,
            time_load=dataset.timings.time_load,
            time_merge=dataset.timings.time_merge,
            time_load_each_entry=dict(dataset.timings.time_load_each_entry),
            aggregations=dict(dataset.timings.aggregations),
        )
        return CleanDataset(data=data, timings=timings)

    def clean_record(self, row: Union[RawRow, CleanRecord]) -> Optional[CleanRecord]:
        """
        Project a raw row onto the kept fields.

        Args:
            row (dict): One parsed CSV line; a CleanRecord is returned unchanged

        Returns:
            CleanRecord or None: None when the selection rule rejects the row
        """
        if isinstance(row, CleanRecord):
            return row

        self.records_processed += 1
        if self.predicate is not None and not self.predicate(row):
            self.records_dropped += 1
            return None

        values = {name: self._text(row.get(name)) for name in CLEAN_FIELDS}
        stats = self.parse_stats(row.get('stats'))
        if stats.payant is None or stats.gratuit is None:
            # Some files carry one count in stats and the other in tags
            tagged = self.parse_stats(row.get('tags'))
            stats = Stats(
                payant=stats.payant if stats.payant is not None else tagged.payant,
                gratuit=stats.gratuit if stats.gratuit is not None else tagged.gratuit,
            )

        return CleanRecord(stats=stats, **values)

    def parse_stats(self, value: Any) -> Stats:
        """
        Parse ``payant:<int>;gratuit:<int>``.

        Unknown segments are ignored; a missing, non-integer or negative
        value leaves the field as None.
        """
        if isinstance(value, Stats):
            return value
        if not isinstance(value, str) or not value.strip():
            return Stats()

        parsed = dict.fromkeys(STATS_KEYS)
        for segment in value.split(self.stats_delimiter):
            key, sep, raw = segment.partition(':')
            if not sep:
                continue
            key = key.strip().lower()
            if key in parsed:
                parsed[key] = self._parse_count(raw)

        return Stats(payant=parsed['payant'], gratuit=parsed['gratuit'])

    @staticmethod
    def _parse_count(raw: str) -> Optional[int]:
        raw = raw.strip()
        if not raw.isdigit() or not raw.isascii():
            return None
        return int(raw)

    @staticmethod
    def _text(value: Any) -> str:
        return value if isinstance(value, str) else ''

    def get_statistics(self) -> Dict[str, float]:
        """Get cleaning statistics."""
        return {
            'records_processed': self.records_processed,
            'records_dropped': self.records_dropped,
            'records_cleaned': self.records_processed - self.records_dropped,
            'success_rate': (self.records_processed - self.records_dropped) / self.records_processed * 100 if self.records_processed > 0 else 0
        }
