#!/usr/bin/env python3
"""
Historical Drawdown Backtest - Main Entry Point

Runs a withdrawal strategy from every historical start date and reports how
often the portfolio survived the horizon:
1. Parse parameters from the command line
2. Load the price, inflation and dividend series
3. Run one trial per start date across a process pool
4. Display success / fail / no-data counters
5. Optionally write the per-trial trace and an outcome chart

Usage: python main.py --capital 1000000 --rate 4 --years 30
"""

from __future__ import annotations
import argparse
import logging
import os
import sys
import time
from dataclasses import replace
from datetime import date, datetime
from typing import List, Optional

from backtest import (
    AggregateStats,
    aggregate,
    make_policy,
    outcomes_frame,
    sweep,
)
from errors import BacktestError
from historical_data import MarketData, load_market_data
from params import POLICIES, Params
from policy_base import WithdrawalPolicy
from simulation import TrialResult

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler('backtest.log'),
            logging.StreamHandler(sys.stdout)
        ]
    )


def parse_date(text: str) -> date:
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {text!r}")


def build_parser() -> argparse.ArgumentParser:
    d = Params()
    parser = argparse.ArgumentParser(description="Historical survival rate of a retirement withdrawal strategy.")
    parser.add_argument("--capital", type=float, default=d.initial_capital, help="Initial capital in USD")
    parser.add_argument("--rate", type=float, default=d.withdraw_rate * 100, help="Fixed withdraw percent, digit part only")
    parser.add_argument("--min-rate", type=float, default=d.min_rate * 100, help="Dual policy percent when savings are behind target")
    parser.add_argument("--max-rate", type=float, default=d.max_rate * 100, help="Dual policy percent when savings are on target")
    parser.add_argument("--years", type=int, default=d.horizon_years, help="Number of years to spend")
    parser.add_argument("--dividend-tax", type=float, default=d.dividend_tax_rate * 100, help="Percent of dividends lost to tax (dual policy)")
    parser.add_argument("--policy", choices=POLICIES, default=d.policy, help="Withdrawal policy")
    parser.add_argument("--source", choices=("csv", "fred"), default=d.source, help="Where to load price and inflation data from")
    parser.add_argument("--prices", default=d.price_file, help="Daily price CSV")
    parser.add_argument("--price-column", type=int, default=d.price_column, help="Index of the price column in the price CSV")
    parser.add_argument("--inflation", default=d.inflation_file, help="Inflation CSV (percent)")
    parser.add_argument("--inflation-layout", choices=("monthly", "annual"), default=d.inflation_layout)
    parser.add_argument("--dividends", default=d.dividend_file, help="Annual dividend yield CSV (percent)")
    parser.add_argument("--consumption", default=d.consumption_file, help="Quarterly personal consumption CSV")
    parser.add_argument("--from", dest="start", type=parse_date, help="First start date to test")
    parser.add_argument("--to", dest="end", type=parse_date, help="Last start date to test")
    parser.add_argument("--workers", type=int, default=d.workers, help="Worker processes (default: one per core)")
    parser.add_argument("--trace", action="store_true", help="Write the per-trial trace file")
    parser.add_argument("--trace-dir", default=d.trace_dir)
    parser.add_argument("--chart", default=d.chart, help="Write an outcome chart to this PNG file")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def params_from_args(args: argparse.Namespace) -> Params:
    return replace(
        Params(),
        initial_capital=args.capital,
        withdraw_rate=args.rate / 100,
        min_rate=args.min_rate / 100,
        max_rate=args.max_rate / 100,
        horizon_years=args.years,
        dividend_tax_rate=args.dividend_tax / 100,
        policy=args.policy,
        source=args.source,
        price_file=args.prices,
        price_column=args.price_column,
        inflation_file=args.inflation,
        inflation_layout=args.inflation_layout,
        dividend_file=args.dividends,
        consumption_file=args.consumption,
        workers=args.workers,
        trace=args.trace,
        trace_dir=args.trace_dir,
        chart=args.chart,
    ).validate()


class BacktestAnalyzer:
    """Runs a complete historical backtest for one set of parameters"""

    def __init__(self, params: Params, start: Optional[date] = None, end: Optional[date] = None) -> None:
        self.params = params
        self.start = start
        self.end = end
        self.policy: WithdrawalPolicy = make_policy(params)
        self.market: Optional[MarketData] = None
        self.trials: List[TrialResult] = []
        self.stats = AggregateStats()

    def load_data(self) -> None:
        print("Loading historical data...")
        self.market = load_market_data(self.params)
        for s in self.market.series():
            print(f"   {s.name}: {s.first_date} .. {s.last_date}")

    def run_backtest(self) -> AggregateStats:
        assert self.market is not None
        print(f"\nBacktesting {self.policy.name} policy...")

        started = time.time()
        self.trials = sweep(self.market, self.policy, self.start, self.end)
        self.stats = aggregate(self.trials)
        print(f"   {len(self.trials):,} start dates from {self.trials[0].start} to {self.trials[-1].start}")
        print(f"   Completed in {time.time() - started:.1f}s")
        return self.stats

    def display_results(self) -> None:
        s = self.stats
        logger.info(f"success = {s.success}, failed = {s.fail}, na = {s.na}")
        logger.info(f"success rate = {s.success_rate:.3f}")
        if self.params.policy == "dual":
            logger.info(f"min rate applied = {s.min_rate_applied}, max rate applied = {s.max_rate_applied}")

    def write_trace(self) -> Optional[str]:
        if not self.params.trace:
            return None
        file_name = os.path.join(
            self.params.trace_dir, f"backtest-trace-{datetime.now().strftime('%Y%m%dT%H%M%S')}.txt"
        )
        with open(file_name, "w") as f:
            for trial in self.trials:
                f.write(trial.trace)
        print(f"   Trace written to {file_name}")
        return file_name

    def write_chart(self) -> Optional[str]:
        if not self.params.chart or not self.trials:
            return None
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
        from visualizations import BacktestVisualizer

        fig = BacktestVisualizer(self.params).create_outcome_chart(outcomes_frame(self.trials), self.stats)
        fig.savefig(self.params.chart, dpi=150, bbox_inches='tight', facecolor='white')
        plt.close(fig)
        print(f"   Chart written to {self.params.chart}")
        return self.params.chart

    def run_complete_analysis(self) -> AggregateStats:
        self.load_data()
        self.run_backtest()
        self.display_results()
        self.write_trace()
        self.write_chart()
        logger.info("done")
        return self.stats


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the historical backtest"""
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)
    try:
        params = params_from_args(args)
        BacktestAnalyzer(params, args.start, args.end).run_complete_analysis()
        return 0
    except BacktestError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return e.exit_code
    except KeyboardInterrupt:
        print("\n\nBacktest interrupted by user.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
