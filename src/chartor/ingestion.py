# ========================
# src/chartor/ingestion.py
# ========================

"""
Data Ingestion Module

Streams one CSV dataset file from a data source and groups its rows by year.
"""

import asyncio
import csv
import itertools
import logging
import re
import time
from contextlib import closing
from typing import Dict, Iterator, List, Optional

import requests

from .errors import FetchError
from .models import RawRow, YearGroup
from .sources import DataSource

logger = logging.getLogger(__name__)

_LEADING_NON_DIGITS = re.compile(r'^\D+')
DELIMITERS = ',;\t|'


def year_from_file_name(file_name: str) -> str:
    """
    Derive a year from a file name such as ``2011_data.csv``.

    Leading non-digit characters are stripped and the next four characters
    must be digits.
    """
    candidate = _LEADING_NON_DIGITS.sub('', file_name)[:4]
    if len(candidate) != 4 or not candidate.isdigit():
        raise ValueError(f"Cannot derive a year from the file name '{file_name}'")
    return candidate


def sniff_delimiter(header_line: str) -> str:
    """Guess the delimiter from the header line; comma when undecidable."""
    try:
        return csv.Sniffer().sniff(header_line, delimiters=DELIMITERS).delimiter
    except csv.Error:
        return ','


class CSVFetcher:
    """
    A streaming CSV reader that groups rows by their ``year`` field.
    Rows are parsed one by one as lines arrive from the source, so a file
    is never held in memory as raw text.
    """

    def __init__(self, source: DataSource):
        """
        Initialize the fetcher.

        Args:
            source (DataSource): Where the files are read from
        """
        if source is None:
            raise TypeError("Cannot create a fetcher without a data source.")
        self.source = source
        logger.debug(f"Initialized CSVFetcher with source: {type(source).__name__}")

    def fetch(self, file_name: str) -> Dict[str, YearGroup]:
        """
        Download and parse one file.

        Args:
            file_name (str): Name of the dataset file

        Returns:
            dict[str, YearGroup]: Rows grouped by year; empty for an empty file

        Raises:
            TypeError: file_name is None or not a string
            FetchError: the file could not be read or parsed
        """
        if file_name is None:
            raise TypeError("Cannot fetch data for a None file name.")
        if not isinstance(file_name, str):
            raise TypeError(f"The file name must be a string, got '{type(file_name).__name__}'.")

        try:
            groups = self._read_groups(file_name)
        except (OSError, ValueError, csv.Error, requests.RequestException) as e:
            logger.error(f"Error reading CSV file '{file_name}': {e}")
            raise FetchError(file_name, str(e)) from e

        total = sum(len(group.data) for group in groups.values())
        logger.info(f"Loaded '{file_name}': {total} rows in {len(groups)} year group(s)")
        return groups

    async def fetch_async(self, file_name: str) -> Dict[str, YearGroup]:
        """Run fetch() in the default executor so several files load at once."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.fetch, file_name)

    def _read_groups(self, file_name: str) -> Dict[str, YearGroup]:
        groups: Dict[str, YearGroup] = {}
        started: Dict[str, float] = {}
        fallback_year: Optional[str] = None

        with closing(self.source.open_lines(file_name)) as lines:
            header_line = self._first_non_blank(lines)
            if header_line is None:
                logger.warning(f"Data file '{file_name}' is empty")
                return groups

            reader = csv.reader(
                itertools.chain([header_line], lines), delimiter=sniff_delimiter(header_line)
            )
            header = [column.strip() for column in next(reader)]
            logger.debug(f"CSV header for '{file_name}': {header}")

            for values in reader:
                if not any(value.strip() for value in values):
                    continue

                row = self._to_row(header, values)
                year = (row.get('year') or '').strip()
                if not year:
                    if fallback_year is None:
                        fallback_year = year_from_file_name(file_name)
                    year = fallback_year

                group = groups.get(year)
                if group is None:
                    group = groups[year] = YearGroup()
                    started[year] = time.perf_counter()
                group.data.append(row)

        # Each timer started at the first row seen for its year
        finished = time.perf_counter()
        for year, group in groups.items():
            group.time = finished - started[year]

        return groups

    @staticmethod
    def _first_non_blank(lines: Iterator[str]) -> Optional[str]:
        for line in lines:
            if line.strip():
                return line
        return None

    @staticmethod
    def _to_row(header: List[str], values: List[str]) -> RawRow:
        row = {}
        for index, column in enumerate(header):
            row[column] = values[index] if index < len(values) else ''
        return row
