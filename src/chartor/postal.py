# ========================
# src/chartor/postal.py
# ========================

"""
Postal Code Lookup

Resolves a French city name to a postal code using the La Poste reference
file (columns ``nom_de_la_commune`` and ``code_postal``).
"""

import asyncio
import csv
import itertools
import logging
import threading
from contextlib import closing
from typing import List, Optional, Tuple

from .cleaning import remove_accent
from .errors import PostalCodeNotFoundError
from .ingestion import sniff_delimiter
from .sources import DataSource

logger = logging.getLogger(__name__)

DEFAULT_POSTAL_CODE_FILE = 'laposte_hexasmal.csv'


def normalize_city(city: str) -> str:
    """'Saint-Étienne' -> 'SAINT ETIENNE'."""
    return remove_accent(city.replace('-', ' ').replace("'", ' ')).strip().upper()


class PostalCodeLookup:
    """
    City -> postal code service.

    The reference file is read from the data source on the first lookup and
    kept for the lifetime of the instance.
    """

    def __init__(self, source: DataSource, file_name: str = DEFAULT_POSTAL_CODE_FILE):
        if source is None:
            raise TypeError("Cannot create a postal code lookup without a data source.")
        self.source = source
        self.file_name = file_name
        self._entries: Optional[List[Tuple[str, str]]] = None
        self._lock = threading.Lock()

    def lookup(self, city: str) -> str:
        """
        Find the postal code of a city.

        The first reference commune that equals the city, contains it, or
        is contained in it wins.

        Args:
            city (str): City name, any case, accents allowed

        Returns:
            str: The postal code

        Raises:
            TypeError: city is None or not a string
            PostalCodeNotFoundError: no commune matches
        """
        if city is None:
            raise TypeError("Cannot get the postal code for the city. The city is None.")
        if not isinstance(city, str):
            raise TypeError(
                f"Cannot get the postal code for the city. Type: '{type(city).__name__}'."
            )

        wanted = normalize_city(city)
        if not wanted:
            raise PostalCodeNotFoundError(city)

        for commune, postal_code in self._load_entries():
            if commune == wanted or wanted in commune or commune in wanted:
                logger.debug(f"Postal code for '{city}': {postal_code}")
                return postal_code

        raise PostalCodeNotFoundError(city)

    async def lookup_async(self, city: str) -> str:
        """Run lookup() in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.lookup, city)

    def _load_entries(self) -> List[Tuple[str, str]]:
        with self._lock:
            if self._entries is None:
                self._entries = self._read_reference()
                logger.info(f"Loaded {len(self._entries)} communes from '{self.file_name}'")
            return self._entries

    def _read_reference(self) -> List[Tuple[str, str]]:
        entries = []
        with closing(self.source.open_lines(self.file_name)) as lines:
            non_blank = (line for line in lines if line.strip())
            header_line = next(non_blank, None)
            if header_line is None:
                return entries
            rows = csv.DictReader(
                itertools.chain([header_line], non_blank), delimiter=sniff_delimiter(header_line)
            )
            for row in rows:
                commune = normalize_city(row.get('nom_de_la_commune') or '')
                postal_code = (row.get('code_postal') or '').strip()
                if commune and postal_code:
                    entries.append((commune, postal_code))
        return entries
