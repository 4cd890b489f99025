from __future__ import annotations
import logging
import os
import pickle
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Union

import pandas as pd
import pandas_datareader as pdr

from errors import DataLoadError
from params import Params
from time_series import AnnualRateSeries, DailyPriceSeries, PeriodSeries, previous_month

logger = logging.getLogger(__name__)

# Cache directory for storing downloaded data
CACHE_DIR = "data_cache"

InflationSeries = Union[AnnualRateSeries, PeriodSeries]


@dataclass(frozen=True)
class MarketData:
    """The fully loaded input series handed to the backtest."""

    prices: DailyPriceSeries
    inflation: InflationSeries
    dividend_yield: Optional[AnnualRateSeries] = None
    consumption: Optional[PeriodSeries] = None

    def series(self) -> List[Union[DailyPriceSeries, AnnualRateSeries, PeriodSeries]]:
        found: List[Union[DailyPriceSeries, AnnualRateSeries, PeriodSeries]] = [self.prices, self.inflation]
        if self.dividend_yield is not None:
            found.append(self.dividend_yield)
        if self.consumption is not None:
            found.append(self.consumption)
        return found

    def inflation_before(self, day: date) -> Optional[float]:
        """Inflation of the year that ended at `day`, taken from its last published month."""
        if isinstance(self.inflation, AnnualRateSeries):
            return self.inflation.rate_for_year(day.year - 1)
        return self.inflation.value_for_period(previous_month(day))

    def dividend_yield_before(self, day: date) -> Optional[float]:
        if self.dividend_yield is None:
            return None
        return self.dividend_yield.rate_for_year(day.year - 1)

    def consumption_at(self, day: date) -> Optional[float]:
        if self.consumption is None:
            return None
        return self.consumption.value_for_period(day)


def _read_csv(path: str, what: str) -> pd.DataFrame:
    try:
        frame = pd.read_csv(path, dtype=str, keep_default_na=False, skipinitialspace=True)
    except FileNotFoundError:
        raise DataLoadError(f"open {what} csv {path} failed: file not found")
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise DataLoadError(f"read {what} csv {path} failed: {e}")
    if frame.empty:
        raise DataLoadError(f"{what} csv {path} has no rows")
    return frame


def _parse_number(text: str) -> Optional[float]:
    try:
        return float(text)
    except (TypeError, ValueError):
        return None


def load_price_csv(path: str, price_column: int = 4, name: str = "S&P 500") -> DailyPriceSeries:
    """
    Load daily prices from a CSV whose first column is an ISO date.

    Args:
        path: CSV file with a header row
        price_column: Index of the price column (4 is the close in Yahoo-style exports)
        name: Series name used in messages

    Returns:
        DailyPriceSeries: Prices keyed by trading day

    Raises:
        DataLoadError: If the file is unreadable, a date is malformed or repeated
    """
    frame = _read_csv(path, name)
    if frame.shape[1] <= price_column:
        raise DataLoadError(f"{name} csv {path} has no column {price_column}")

    pairs = []
    skipped = 0
    for row_number, (day_text, price_text) in enumerate(
        zip(frame.iloc[:, 0], frame.iloc[:, price_column]), start=2
    ):
        try:
            day = datetime.strptime(day_text.strip(), "%Y-%m-%d").date()
        except ValueError:
            raise DataLoadError(f"{name} csv {path} line {row_number}: bad date {day_text!r}")
        price = _parse_number(price_text)
        if price is None:
            skipped += 1
            continue
        pairs.append((day, price))

    if skipped:
        logger.warning(f"{name}: skipped {skipped} rows without a price in {path}")
    series = DailyPriceSeries.from_pairs(pairs, name=name)
    logger.info(f"Loaded {len(series)} {name} prices {series.first_date} .. {series.last_date}")
    return series


def load_monthly_inflation_csv(path: str, name: str = "inflation") -> PeriodSeries:
    """
    Load a year-by-month inflation table.

    Column 0 holds the year and columns 1-12 the year-over-year inflation of
    each month in percent. Blank or non-numeric cells (e.g. months not yet
    published) are skipped.
    """
    frame = _read_csv(path, name)
    if frame.shape[1] < 13:
        raise DataLoadError(f"{name} csv {path} needs a year column and 12 month columns")

    values = {}
    for row_number, row in enumerate(frame.itertuples(index=False), start=2):
        try:
            year = int(str(row[0]).strip())
        except ValueError:
            raise DataLoadError(f"{name} csv {path} line {row_number}: bad year {row[0]!r}")
        for month in range(1, 13):
            rate = _parse_number(row[month])
            if rate is None:
                continue
            key = date(year, month, 1)
            if key in values:
                raise DataLoadError(f"{name} csv {path}: duplicate year {year}")
            values[key] = rate / 100

    if not values:
        raise DataLoadError(f"{name} csv {path} contains no inflation figures")
    series = PeriodSeries(values, freq="M", name=name)
    logger.info(f"Loaded {len(series)} monthly {name} figures {series.first_date} .. {series.last_date}")
    return series


def load_annual_rate_csv(path: str, name: str) -> AnnualRateSeries:
    """Load a `year,rate` CSV with rates in percent."""
    frame = _read_csv(path, name)
    if frame.shape[1] < 2:
        raise DataLoadError(f"{name} csv {path} needs a year and a rate column")

    rates = {}
    for row_number, (year_text, rate_text) in enumerate(zip(frame.iloc[:, 0], frame.iloc[:, 1]), start=2):
        try:
            year = int(str(year_text).strip())
        except ValueError:
            raise DataLoadError(f"{name} csv {path} line {row_number}: bad year {year_text!r}")
        rate = _parse_number(rate_text)
        if rate is None:
            logger.warning(f"{name}: no rate for {year} in {path}")
            continue
        if year in rates:
            raise DataLoadError(f"{name} csv {path}: duplicate year {year}")
        rates[year] = rate / 100

    series = AnnualRateSeries(rates, name=name)
    logger.info(f"Loaded {len(series)} annual {name} rates {series.first_date.year} .. {series.last_date.year}")
    return series


def load_quarterly_csv(path: str, name: str = "consumption") -> PeriodSeries:
    """Load a `date,value` CSV of quarterly figures (e.g. personal consumption)."""
    frame = _read_csv(path, name)
    if frame.shape[1] < 2:
        raise DataLoadError(f"{name} csv {path} needs a date and a value column")

    values = {}
    for row_number, (day_text, value_text) in enumerate(zip(frame.iloc[:, 0], frame.iloc[:, 1]), start=2):
        try:
            day = datetime.strptime(day_text.strip(), "%Y-%m-%d").date()
        except ValueError:
            raise DataLoadError(f"{name} csv {path} line {row_number}: bad date {day_text!r}")
        value = _parse_number(value_text)
        if value is None:
            continue
        values[day] = value

    if not values:
        raise DataLoadError(f"{name} csv {path} contains no values")
    series = PeriodSeries(values, freq="Q", name=name)
    logger.info(f"Loaded {len(series)} quarterly {name} figures {series.first_date} .. {series.last_date}")
    return series


def _fred_frame(series_id: str, start_year: int, force_download: bool) -> pd.DataFrame:
    """Download a FRED series, caching the raw frame as a pickle."""
    os.makedirs(CACHE_DIR, exist_ok=True)
    cache_file = os.path.join(CACHE_DIR, f"{series_id.lower()}.pkl")
    try:
        if not force_download and os.path.exists(cache_file):
            with open(cache_file, "rb") as f:
                return pickle.load(f)
    except (OSError, pickle.UnpicklingError, EOFError) as e:
        logger.warning(f"Ignoring unreadable cache {cache_file}: {e}")

    end_date = datetime.now()
    start_date = f"{start_year}-01-01"
    print(
        f"Downloading data from FRED (series: {series_id}) from {start_date} to {end_date.strftime('%Y-%m-%d')}..."
    )
    try:
        data = pdr.fred.FredReader(series_id, start=start_date, end=end_date).read()
    except Exception as e:
        raise DataLoadError(f"download of FRED series {series_id} failed: {e}")
    if data.empty:
        raise DataLoadError(f"No data available for series {series_id} from {start_date}")

    with open(cache_file, "wb") as f:
        pickle.dump(data, f)
    return data


def get_fred_prices(series_id: str = "SP500", start_year: int = 1950, force_download: bool = False) -> DailyPriceSeries:
    """Daily index levels from FRED; days without a quote are dropped."""
    data = _fred_frame(series_id, start_year, force_download)[series_id].dropna()
    series = DailyPriceSeries({ts.date(): float(v) for ts, v in data.items()}, name=series_id)
    logger.info(f"Loaded {len(series)} {series_id} prices {series.first_date} .. {series.last_date}")
    return series


def get_fred_inflation(series_id: str = "CPIAUCSL", start_year: int = 1950, force_download: bool = False) -> PeriodSeries:
    """Year-over-year inflation per month, derived from a monthly CPI index."""
    cpi = _fred_frame(series_id, start_year, force_download)[series_id].dropna()
    yoy = cpi.pct_change(periods=12).dropna()
    series = PeriodSeries({ts.date(): float(v) for ts, v in yoy.items()}, freq="M", name=series_id)
    logger.info(f"Loaded {len(series)} monthly {series_id} inflation figures {series.first_date} .. {series.last_date}")
    return series


def load_market_data(p: Params) -> MarketData:
    """Load every series the parameters point at. Any failure is fatal."""
    if p.source == "fred":
        prices = get_fred_prices(p.price_series_id)
        inflation: InflationSeries = get_fred_inflation(p.cpi_series_id)
    else:
        prices = load_price_csv(p.price_file, p.price_column)
        if p.inflation_layout == "annual":
            inflation = load_annual_rate_csv(p.inflation_file, "inflation")
        else:
            inflation = load_monthly_inflation_csv(p.inflation_file)

    dividend_yield = None
    if p.policy == "dual":
        if not p.dividend_file:
            raise DataLoadError("the dual-rate policy needs a dividend yield file")
        dividend_yield = load_annual_rate_csv(p.dividend_file, "dividend yield")

    consumption = load_quarterly_csv(p.consumption_file) if p.consumption_file else None
    return MarketData(prices, inflation, dividend_yield, consumption)
