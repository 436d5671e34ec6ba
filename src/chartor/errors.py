# ========================
# src/chartor/errors.py
# ========================

"""
Pipeline errors.

Invalid arguments are reported with the builtin TypeError/ValueError; the
classes below cover failures that happen while the pipeline is working.
"""


class ChartorError(Exception):
    """Base class for pipeline failures."""


class FetchError(ChartorError):
    """A dataset file could not be downloaded or parsed."""

    def __init__(self, file_name: str, reason: str = ""):
        self.file_name = file_name
        message = f"Cannot load data file '{file_name}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class PostalCodeNotFoundError(ChartorError, LookupError):
    """No postal code matches the city."""

    def __init__(self, city: str):
        self.city = city
        super().__init__(f"Cannot find the postal code for the city '{city}'.")
