# ========================
# src/chartor/merging.py
# ========================

"""
Merge Module

Fetches every dataset file concurrently and merges the results by year.
"""

import asyncio
import logging
from typing import Dict, Iterable, List

from .ingestion import CSVFetcher
from .models import MergedDataset, YearGroup
from ..utils.performance_monitor import stopwatch

logger = logging.getLogger(__name__)


def _unique_names(file_names: Iterable[str]) -> List[str]:
    if file_names is None:
        raise TypeError("Cannot fetch data from the data directory. The file list is None.")
    if isinstance(file_names, (str, bytes)):
        raise TypeError("The file list must be a collection of names, not a single string.")
    # dict keeps first-seen order
    return list(dict.fromkeys(file_names))


class DatasetMerger:
    """
    Issues one fetch per file, all at once, and merges the per-file year
    groups into a single MergedDataset.
    """

    def __init__(self, fetcher: CSVFetcher):
        """
        Initialize the merger.

        Args:
            fetcher (CSVFetcher): Fetcher used for every file
        """
        if fetcher is None:
            raise TypeError("Cannot create a merger without a fetcher.")
        self.fetcher = fetcher

    async def merge_all_async(self, file_names: Iterable[str]) -> MergedDataset:
        """
        Fetch all files concurrently and merge them by year.

        The first failing fetch fails the whole merge. When two files hold
        the same year, the one later in the list wins.

        Args:
            file_names (iterable[str]): Dataset file names; duplicates are ignored

        Returns:
            MergedDataset: Year groups plus load and merge timings
        """
        names = _unique_names(file_names)
        if not names:
            logger.info("No data files to load")
            return MergedDataset()

        logger.info(f"Loading {len(names)} data file(s) concurrently...")
        with stopwatch() as load_watch:
            results = await asyncio.gather(*(self.fetcher.fetch_async(name) for name in names))

        with stopwatch() as merge_watch:
            merged = self._merge(names, results)

        dataset = MergedDataset(
            groups=merged,
            time_load=load_watch.elapsed,
            time_merge=merge_watch.elapsed,
        )
        logger.info(
            f"Merged {len(names)} file(s) into {len(dataset)} year(s) "
            f"(load {dataset.time_load:.3f}s, merge {dataset.time_merge:.3f}s)"
        )
        return dataset

    def merge_all(self, file_names: Iterable[str]) -> MergedDataset:
        """Blocking wrapper around merge_all_async()."""
        return asyncio.run(self.merge_all_async(file_names))

    @staticmethod
    def _merge(names: List[str], results: List[Dict[str, YearGroup]]) -> Dict[str, YearGroup]:
        merged: Dict[str, YearGroup] = {}
        owners: Dict[str, str] = {}
        for name, groups in zip(names, results):
            for year, group in groups.items():
                if year in merged:
                    logger.warning(
                        f"Year {year} from '{name}' replaces the rows loaded from '{owners[year]}'"
                    )
                merged[year] = group
                owners[year] = name
        return merged
