# ========================
# src/chartor/sources.py
# ========================

"""
Data Sources

Where dataset files come from: a local data directory, or a running Chartor
service reached over HTTP.
"""

import logging
from pathlib import Path
from typing import Iterator, List, Optional
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)


class DataSource:
    """Lists dataset files and streams their text lines."""

    def list_files(self) -> List[str]:
        raise NotImplementedError

    def open_lines(self, file_name: str) -> Iterator[str]:
        raise NotImplementedError


class LocalDataSource(DataSource):
    """
    Reads CSV files from a directory on disk.
    """

    def __init__(self, data_dir):
        """
        Initialize the local source.

        Args:
            data_dir (str | Path): Directory holding the CSV files
        """
        if data_dir is None:
            raise TypeError("The data directory is None. Please give a path.")
        self.data_dir = Path(data_dir)
        logger.debug(f"Initialized LocalDataSource for directory: {self.data_dir}")

    def _check_directory(self) -> None:
        if not self.data_dir.exists():
            raise FileNotFoundError(f"The data directory does not exist: {self.data_dir}")
        if not self.data_dir.is_dir():
            raise NotADirectoryError(f"The data path is not a directory: {self.data_dir}")

    def list_files(self) -> List[str]:
        """
        List the CSV file names of the directory, sorted.

        Returns:
            list[str]: File names (not paths)
        """
        self._check_directory()
        return sorted(
            path.name for path in self.data_dir.iterdir()
            if path.is_file() and path.name.endswith('.csv')
        )

    def open_lines(self, file_name: str) -> Iterator[str]:
        """
        Yield the lines of one file without reading it whole.

        Args:
            file_name (str): Name of a file inside the data directory

        Yields:
            str: One line, line terminator kept
        """
        if '/' in file_name or '\\' in file_name or file_name in ('', '.', '..'):
            raise ValueError(f"Invalid data file name: '{file_name}'")

        file_path = self.data_dir / file_name
        with open(file_path, 'r', newline='', encoding='utf-8-sig') as f:
            for line in f:
                yield line


class HTTPDataSource(DataSource):
    """
    Reads the file list and CSV files from a Chartor HTTP service
    (``GET /csv`` and ``GET /data/<name>``).
    """

    def __init__(self, base_url: str, session: Optional[requests.Session] = None,
                 timeout: float = 30.0):
        """
        Initialize the HTTP source.

        Args:
            base_url (str): Service root, e.g. ``http://localhost:3000``
            session (requests.Session): Optional session to reuse
            timeout (float): Per-request timeout in seconds
        """
        if not base_url:
            raise ValueError("The base URL is empty. Please give the service URL.")
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout
        logger.debug(f"Initialized HTTPDataSource for {self.base_url}")

    def list_files(self) -> List[str]:
        response = self.session.get(f"{self.base_url}/csv", timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()
        files = payload.get('list') if isinstance(payload, dict) else None
        if not isinstance(files, list):
            raise ValueError(f"Unexpected file list payload from {self.base_url}/csv")
        return [str(name) for name in files]

    def open_lines(self, file_name: str) -> Iterator[str]:
        url = f"{self.base_url}/data/{quote(file_name)}"
        with self.session.get(url, stream=True, timeout=self.timeout) as response:
            response.raise_for_status()
            # text/csv without a charset would otherwise decode as latin-1
            if 'charset' not in response.headers.get('content-type', '').lower():
                response.encoding = 'utf-8'
            first = True
            for line in response.iter_lines(decode_unicode=True):
                if first:
                    line = line.lstrip('\ufeff')
                    first = False
                yield line + '\n'
