"""
Immutable historical series with the lookup rules the backtest relies on.

Three shapes are supported:
- DailyPriceSeries: one price per trading day, resolved forward to the next
  trading day when the requested date has no quote.
- AnnualRateSeries: one rate per calendar year, exact lookup only.
- PeriodSeries: monthly or quarterly figures keyed by period start, resolved
  to the period containing the requested date.
"""

from __future__ import annotations
import calendar
from datetime import date, timedelta
from typing import Dict, Iterable, Mapping, Optional, Tuple

import numpy as np

from errors import DataLoadError


def add_years(day: date, years: int) -> date:
    """Advance `day` by whole calendar years; February 29 rolls over to March 1."""
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return date(day.year + years, 3, 1)


def _to_datetime64(day: date) -> np.datetime64:
    return np.datetime64(day, "D")


class DailyPriceSeries:
    """Prices keyed by calendar date, stored as sorted numpy arrays."""

    def __init__(self, prices: Mapping[date, float], name: str = "prices") -> None:
        if not prices:
            raise DataLoadError(f"{name}: series is empty")
        days = sorted(prices)
        values = [float(prices[d]) for d in days]
        for d, v in zip(days, values):
            if not np.isfinite(v) or v <= 0:
                raise DataLoadError(f"{name}: price on {d.isoformat()} must be positive, got {v}")

        self.name = name
        self._days = np.array([_to_datetime64(d) for d in days], dtype="datetime64[D]")
        self._values = np.array(values, dtype=float)
        self._days.setflags(write=False)
        self._values.setflags(write=False)
        self.first_date: date = days[0]
        self.last_date: date = days[-1]

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[date, float]], name: str = "prices") -> "DailyPriceSeries":
        """Build a series from (date, price) pairs, rejecting repeated dates."""
        prices: Dict[date, float] = {}
        for d, v in pairs:
            if d in prices:
                raise DataLoadError(f"{name}: duplicate date {d.isoformat()}")
            prices[d] = v
        return cls(prices, name=name)

    def __len__(self) -> int:
        return len(self._values)

    def price_on_or_after(self, day: date) -> Optional[Tuple[date, float]]:
        """
        Resolve the price on `day`, or on the next stored date after it.

        Returns None once `day` lies past the last stored date; the historical
        window has run out rather than anything being wrong.
        """
        if day > self.last_date:
            return None
        idx = int(np.searchsorted(self._days, _to_datetime64(day), side="left"))
        resolved = self._days[idx].item()
        return resolved, float(self._values[idx])


class AnnualRateSeries:
    """Rates keyed by calendar year, expressed as fractions."""

    def __init__(self, rates: Mapping[int, float], name: str = "rates") -> None:
        if not rates:
            raise DataLoadError(f"{name}: series is empty")
        self.name = name
        self._rates: Dict[int, float] = {int(y): float(r) for y, r in rates.items()}
        years = sorted(self._rates)
        self.first_date = date(years[0], 1, 1)
        self.last_date = date(years[-1], 12, 31)

    def __len__(self) -> int:
        return len(self._rates)

    def rate_for_year(self, year: int) -> Optional[float]:
        return self._rates.get(year)


class PeriodSeries:
    """
    Sub-annual figures keyed by period start.

    `freq` is "Q" (quarters starting in January, April, July, October) or
    "M" (months). A lookup uses the last published figure for the period
    containing the requested date.
    """

    FREQUENCIES = ("Q", "M")

    def __init__(self, values: Mapping[date, float], freq: str = "Q", name: str = "values") -> None:
        if freq not in self.FREQUENCIES:
            raise DataLoadError(f"{name}: unsupported frequency {freq!r}")
        if not values:
            raise DataLoadError(f"{name}: series is empty")
        self.name = name
        self.freq = freq
        self._values: Dict[date, float] = {}
        for d, v in values.items():
            key = self.period_start(d)
            if key in self._values:
                raise DataLoadError(f"{name}: duplicate period starting {key.isoformat()}")
            self._values[key] = float(v)
        starts = sorted(self._values)
        self.first_date = starts[0]
        self.last_date = self._period_end(starts[-1])

    def __len__(self) -> int:
        return len(self._values)

    def period_start(self, day: date) -> date:
        if self.freq == "M":
            return date(day.year, day.month, 1)
        return date(day.year, 3 * ((day.month - 1) // 3) + 1, 1)

    def _period_end(self, start: date) -> date:
        months = 1 if self.freq == "M" else 3
        last_month = start.month + months - 1
        return date(start.year, last_month, calendar.monthrange(start.year, last_month)[1])

    def value_for_period(self, day: date) -> Optional[float]:
        return self._values.get(self.period_start(day))


def previous_month(day: date) -> date:
    """First day of the month before `day`."""
    return (date(day.year, day.month, 1) - timedelta(days=1)).replace(day=1)
