# ========================
# src/chartor/transformation.py
# ========================

"""
Data Transformation Module

Folds a CleanDataset into per-dimension, per-year results: by record ID,
by city, by museum and by French department.
"""

import asyncio
import logging
from typing import Dict, Optional

from .models import AggregateResult, CleanDataset, CleanRecord, Totals
from .errors import PostalCodeNotFoundError
from .postal import PostalCodeLookup
from ..utils.performance_monitor import stopwatch

logger = logging.getLogger(__name__)

UNKNOWN_KEY = 'UNKNOWN'
OTHER_DEPARTMENT = 'other'


def _check_dataset(dataset: CleanDataset, dimension: str) -> None:
    if dataset is None:
        raise TypeError(f"Cannot aggregate data by {dimension}. The data is None.")
    if not isinstance(dataset, CleanDataset):
        raise TypeError(
            f"Cannot aggregate data by {dimension}. "
            f"Expected a CleanDataset, got '{type(dataset).__name__}'."
        )


class TotalsAggregator:
    """
    Sums payant/gratuit per (key, year). Subclasses choose the key; a key of
    None leaves the record out.
    """

    name = 'totals'
    dimension = 'key'

    def key_for(self, record: CleanRecord) -> Optional[str]:
        raise NotImplementedError

    def aggregate(self, dataset: CleanDataset) -> AggregateResult:
        """
        Fold every record of every year.

        Args:
            dataset (CleanDataset): Output of the cleaner

        Returns:
            AggregateResult: key -> year -> Totals
        """
        _check_dataset(dataset, self.dimension)
        return self._fold(dataset, self.key_for)

    def _fold(self, dataset: CleanDataset, key_for) -> AggregateResult:
        result = AggregateResult(name=self.name)
        with stopwatch() as watch:
            for year, records in dataset.data.items():
                for record in records:
                    key = key_for(record)
                    if key is None:
                        continue
                    per_year = result.data.setdefault(key, {})
                    totals = per_year.get(year)
                    if totals is None:
                        totals = per_year[year] = Totals()
                    totals.add(record.stats)

        result.time_spend = watch.elapsed
        logger.info(f"Aggregated by {self.dimension}: {len(result.data)} keys in {result.time_spend:.3f}s")
        return result


class IdAggregator:
    """Keeps the full record per (id, year); a later duplicate replaces an earlier one."""

    name = 'by_id'

    def aggregate(self, dataset: CleanDataset) -> AggregateResult:
        _check_dataset(dataset, 'ID')

        result = AggregateResult(name=self.name)
        with stopwatch() as watch:
            for year, records in dataset.data.items():
                for record in records:
                    result.data.setdefault(record.id, {})[year] = record

        result.time_spend = watch.elapsed
        logger.info(f"Aggregated by ID: {len(result.data)} keys in {result.time_spend:.3f}s")
        return result


class CityAggregator(TotalsAggregator):
    name = 'by_city'
    dimension = 'city'

    def __init__(self, drop_empty: bool = True):
        """
        Args:
            drop_empty (bool): Leave out records without a city instead of
                bucketing them under UNKNOWN
        """
        self.drop_empty = drop_empty

    def key_for(self, record: CleanRecord) -> Optional[str]:
        city = record.city.strip().upper()
        if city:
            return city
        return None if self.drop_empty else UNKNOWN_KEY


class MuseumAggregator(TotalsAggregator):
    name = 'by_museum'
    dimension = 'museum'

    def key_for(self, record: CleanRecord) -> Optional[str]:
        return record.name.strip().upper()


class DepartmentAggregator(TotalsAggregator):
    """
    Buckets French records by the first two digits of their postal code and
    everything else under ``other``.

    Records without a postal code are resolved through the lookup service in
    a separate step before folding; one unresolved city fails the whole
    aggregation.
    """

    name = 'by_department'
    dimension = 'department'

    def __init__(self, lookup: PostalCodeLookup):
        if lookup is None:
            raise TypeError("Cannot aggregate by department without a postal code lookup.")
        self.lookup = lookup

    async def resolve_postal_codes(self, dataset: CleanDataset) -> Dict[str, str]:
        """
        Look up every distinct city of a French record that has no postal code.

        Returns:
            dict: city -> postal code
        """
        _check_dataset(dataset, self.dimension)
        cities = list(dict.fromkeys(
            record.city
            for records in dataset.data.values()
            for record in records
            if self._is_french(record) and not record.postal_code.strip()
        ))
        if not cities:
            return {}

        logger.info(f"Resolving postal codes for {len(cities)} cities")
        codes = await asyncio.gather(*(self.lookup.lookup_async(city) for city in cities))
        return dict(zip(cities, codes))

    async def aggregate_async(self, dataset: CleanDataset) -> AggregateResult:
        """Resolve missing postal codes, then fold."""
        postal_codes = await self.resolve_postal_codes(dataset)
        return self.aggregate(dataset, postal_codes)

    def aggregate(self, dataset: CleanDataset,
                  postal_codes: Optional[Dict[str, str]] = None) -> AggregateResult:
        """
        Fold with already resolved postal codes.

        Args:
            dataset (CleanDataset): Output of the cleaner
            postal_codes (dict): city -> postal code for records lacking one
        """
        _check_dataset(dataset, self.dimension)
        resolved = postal_codes or {}
        return self._fold(dataset, lambda record: self.department_of(record, resolved))

    def department_of(self, record: CleanRecord, postal_codes: Dict[str, str]) -> str:
        if not self._is_french(record):
            return OTHER_DEPARTMENT
        postal_code = record.postal_code.strip() or postal_codes.get(record.city, '')
        if not postal_code:
            raise PostalCodeNotFoundError(record.city)
        return postal_code[:2]

    @staticmethod
    def _is_french(record: CleanRecord) -> bool:
        return record.country_code.strip().lower() == 'fr'


def aggregate_by_id(dataset: CleanDataset) -> AggregateResult:
    return IdAggregator().aggregate(dataset)


def aggregate_by_city(dataset: CleanDataset, drop_empty: bool = True) -> AggregateResult:
    return CityAggregator(drop_empty=drop_empty).aggregate(dataset)


def aggregate_by_museum(dataset: CleanDataset) -> AggregateResult:
    return MuseumAggregator().aggregate(dataset)


async def aggregate_by_department_async(dataset: CleanDataset,
                                        lookup: PostalCodeLookup) -> AggregateResult:
    return await DepartmentAggregator(lookup).aggregate_async(dataset)
