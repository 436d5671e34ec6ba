# ========================
# src/chartor/models.py
# ========================

"""
Data Model

Typed structures handed from one pipeline stage to the next.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Union

RawRow = Dict[str, str]

# Fields kept by the cleaner, in output order
CLEAN_FIELDS = (
    'id', 'name', 'city', 'country', 'country_code',
    'postal_code', 'street', 'year', 'status',
)


@dataclass
class YearGroup:
    """All rows of one source file sharing a year."""
    data: List[RawRow] = field(default_factory=list)
    time: float = 0.0


@dataclass
class MergedDataset:
    """Year-keyed groups from every fetched file plus load/merge timings."""
    groups: Dict[str, YearGroup] = field(default_factory=dict)
    time_load: float = 0.0
    time_merge: float = 0.0

    def years(self) -> List[str]:
        return list(self.groups)

    def __len__(self) -> int:
        return len(self.groups)


@dataclass(frozen=True)
class Stats:
    """Paid and free visit counts; None means the source gave no usable value."""
    payant: Optional[int] = None
    gratuit: Optional[int] = None


@dataclass(frozen=True)
class CleanRecord:
    id: str
    name: str
    city: str
    country: str
    country_code: str
    postal_code: str
    street: str
    year: str
    status: str
    stats: Stats = Stats()

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TimingReport:
    time_cleanup: Optional[float] = None
    time_load: Optional[float] = None
    time_merge: Optional[float] = None
    time_load_each_entry: Dict[str, float] = field(default_factory=dict)
    aggregations: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CleanDataset:
    data: Dict[str, List[CleanRecord]] = field(default_factory=dict)
    timings: TimingReport = field(default_factory=TimingReport)

    def record_count(self) -> int:
        return sum(len(records) for records in self.data.values())


@dataclass
class Totals:
    """Running per-year sums; stats without a value add nothing."""
    payant: int = 0
    gratuit: int = 0

    def add(self, stats: Stats) -> None:
        if stats.payant is not None:
            self.payant += stats.payant
        if stats.gratuit is not None:
            self.gratuit += stats.gratuit

    @property
    def total(self) -> int:
        return self.payant + self.gratuit

    def to_dict(self) -> dict:
        return {'payant': self.payant, 'gratuit': self.gratuit}


@dataclass
class AggregateResult:
    """
    Dimension key -> year -> value.

    Values are Totals for the summing aggregators and CleanRecord for the
    ID aggregator.
    """
    name: str
    data: Dict[str, Dict[str, Union[Totals, CleanRecord]]] = field(default_factory=dict)
    time_spend: float = 0.0

    def keys(self) -> List[str]:
        return list(self.data)

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'time_spend': self.time_spend,
            'data': {
                key: {year: value.to_dict() for year, value in years.items()}
                for key, years in self.data.items()
            },
        }
