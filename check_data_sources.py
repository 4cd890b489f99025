import sys
from datetime import date
from typing import Any, Dict, Optional

from backtest import start_window
from errors import BacktestError
from historical_data import MarketData, load_market_data
from params import Params


def check_data_series(market: MarketData, now: Optional[date] = None) -> Dict[str, Any]:
    """
    Report the coverage of every loaded series and their overlap.

    Args:
        market: Loaded input series
        now: Upper bound of the start window (default: today)

    Returns:
        dict: Bounds per series plus the start window, or None bounds if the
        series do not overlap
    """
    info: Dict[str, Any] = {
        "series": [
            {"name": s.name, "first": s.first_date, "last": s.last_date, "count": len(s)}
            for s in market.series()
        ]
    }
    try:
        first, last = start_window(market, now)
    except BacktestError:
        first, last = None, None
    info["window_start"] = first
    info["window_end"] = last
    info["window_days"] = (last - first).days + 1 if first and last else 0
    return info


if __name__ == "__main__":
    p = Params(policy=sys.argv[1] if len(sys.argv) > 1 else "fixed")
    try:
        info = check_data_series(load_market_data(p))
    except BacktestError as e:
        print(f"Error loading data: {e}")
        sys.exit(e.exit_code)

    for s in info["series"]:
        print(f"{s['name']}: {s['first']} .. {s['last']} ({s['count']} points)")
    if info["window_days"]:
        print(f"Start window: {info['window_start']} .. {info['window_end']} ({info['window_days']} days)")
    else:
        print("The series do not overlap; no start dates available.")
