# ========================
# src/chartor/charting.py
# ========================

"""
Chart payloads in the ``{labels, datasets}`` shape expected by Chart.js.
"""

from typing import Dict, Iterable, List, Optional

from .models import AggregateResult, CleanRecord, Totals

METRICS = ('payant', 'gratuit', 'total')


def _value(entry, metric: str) -> int:
    if isinstance(entry, CleanRecord):
        totals = Totals()
        totals.add(entry.stats)
        entry = totals
    if metric == 'total':
        return entry.total
    return getattr(entry, metric)


def to_chart_data(result: AggregateResult, metric: str = 'payant',
                  keys: Optional[Iterable[str]] = None,
                  limit: Optional[int] = None) -> Dict[str, List]:
    """
    Build a line-chart payload: one dataset per key, one label per year.

    Args:
        result (AggregateResult): Output of an aggregator
        metric (str): 'payant', 'gratuit' or 'total'
        keys (iterable): Only chart these keys
        limit (int): Keep the N keys with the largest overall value

    Returns:
        dict: {"labels": [...years], "datasets": [{"label", "data"}, ...]}
    """
    if result is None:
        raise TypeError("Cannot build chart data from None.")
    if metric not in METRICS:
        raise ValueError(f"Unknown metric '{metric}'. Expected one of {', '.join(METRICS)}.")
    if limit is not None and limit < 0:
        raise ValueError("The dataset limit must be positive.")

    selected = list(result.data) if keys is None else [key for key in keys if key in result.data]
    labels = sorted({year for key in selected for year in result.data[key]})

    datasets = []
    for key in selected:
        per_year = result.data[key]
        data = [_value(per_year[year], metric) if year in per_year else 0 for year in labels]
        datasets.append({'label': key, 'data': data})

    datasets.sort(key=lambda dataset: (-sum(dataset['data']), dataset['label']))
    if limit is not None:
        datasets = datasets[:limit]

    return {'labels': labels, 'datasets': datasets}
