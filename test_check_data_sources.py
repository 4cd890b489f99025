from datetime import date

from check_data_sources import check_data_series
from historical_data import MarketData
from time_series import AnnualRateSeries, DailyPriceSeries


def test_overlap_report():
    market = MarketData(
        prices=DailyPriceSeries({date(1950, 1, 3): 16.66, date(1960, 1, 4): 59.91}),
        inflation=AnnualRateSeries({y: 0.02 for y in range(1955, 1971)}),
    )
    info = check_data_series(market)
    assert [s["name"] for s in info["series"]] == ["prices", "rates"]
    assert info["series"][0]["count"] == 2
    assert info["window_start"] == date(1955, 1, 1)
    assert info["window_end"] == date(1960, 1, 4)
    assert info["window_days"] == (date(1960, 1, 4) - date(1955, 1, 1)).days + 1


def test_disjoint_series():
    market = MarketData(
        prices=DailyPriceSeries({date(1950, 1, 3): 16.66}),
        inflation=AnnualRateSeries({1990: 0.05}),
    )
    info = check_data_series(market)
    assert info["window_start"] is None
    assert info["window_days"] == 0
