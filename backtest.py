from __future__ import annotations
import logging
import math
import multiprocessing
import os
from dataclasses import dataclass
from datetime import date, timedelta
from functools import partial, reduce
from typing import Dict, Iterable, List, Optional, Tuple, Type

import pandas as pd

from errors import ConfigurationError
from historical_data import MarketData
from params import Params
from policy_base import WithdrawalPolicy
from policy_dual_rate import DualRatePolicy
from policy_fixed_rate import FixedRatePolicy
from simulation import Outcome, TrialResult, run_trial

logger = logging.getLogger(__name__)

POLICY_CLASSES: Dict[str, Type[WithdrawalPolicy]] = {
    "fixed": FixedRatePolicy,
    "dual": DualRatePolicy,
}


def make_policy(p: Params) -> WithdrawalPolicy:
    try:
        return POLICY_CLASSES[p.policy](p)
    except KeyError:
        raise ConfigurationError(f"unknown policy {p.policy!r}")


@dataclass(frozen=True)
class AggregateStats:
    """Counters folded from trial outcomes. Addition is associative and commutative."""

    success: int = 0
    fail: int = 0
    na: int = 0
    min_rate_applied: int = 0
    max_rate_applied: int = 0

    def __add__(self, other: "AggregateStats") -> "AggregateStats":
        if not isinstance(other, AggregateStats):
            return NotImplemented
        return AggregateStats(
            success=self.success + other.success,
            fail=self.fail + other.fail,
            na=self.na + other.na,
            min_rate_applied=self.min_rate_applied + other.min_rate_applied,
            max_rate_applied=self.max_rate_applied + other.max_rate_applied,
        )

    @classmethod
    def from_trial(cls, trial: TrialResult) -> "AggregateStats":
        return cls(
            success=int(trial.outcome is Outcome.SUCCESS),
            fail=int(trial.outcome is Outcome.FAIL),
            na=int(trial.outcome is Outcome.NO_DATA),
            min_rate_applied=trial.min_applied,
            max_rate_applied=trial.max_applied,
        )

    @property
    def trials(self) -> int:
        return self.success + self.fail + self.na

    @property
    def success_rate(self) -> float:
        """Share of successful trials among those with complete data; nan if there are none."""
        decided = self.success + self.fail
        return self.success / decided if decided else math.nan


def start_window(market: MarketData, now: Optional[date] = None) -> Tuple[date, date]:
    """Days on which every input series has data, clipped to today."""
    series = market.series()
    first = max(s.first_date for s in series)
    last = min(s.last_date for s in series)
    last = min(last, now or date.today())
    if first > last:
        raise ConfigurationError(f"the input series do not overlap (latest start {first}, earliest end {last})")
    return first, last


def start_dates(
    market: MarketData,
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[date] = None,
) -> List[date]:
    """Every calendar day of the start window, optionally narrowed to [start, end]."""
    first, last = start_window(market, now)
    if start is not None:
        first = max(first, start)
    if end is not None:
        last = min(last, end)
    if first > last:
        raise ConfigurationError(f"no start dates between {first} and {last}")
    return [first + timedelta(days=i) for i in range((last - first).days + 1)]


def simulate_trials(
    days: Iterable[date],
    policy: WithdrawalPolicy,
    market: MarketData,
    workers: Optional[int] = None,
    trace: bool = False,
) -> List[TrialResult]:
    """
    Run one trial per start date and return the results in start-date order.

    Args:
        days: Start dates, one independent trial each
        policy: Withdrawal policy shared by all trials
        market: Loaded input series
        workers: Process count; None uses every core, 1 runs in this process
        trace: Keep the per-trial human-readable trace

    Returns:
        list of TrialResult
    """
    days = list(days)
    job = partial(run_trial, policy=policy, market=market, trace=trace)
    num_procs = workers if workers is not None else (os.cpu_count() or 1)
    num_procs = min(num_procs, len(days)) or 1

    if num_procs <= 1:
        logger.debug(f"Running {len(days)} trials sequentially")
        return [job(d) for d in days]

    chunksize = max(1, len(days) // (num_procs * 4))
    logger.debug(f"Running {len(days)} trials on {num_procs} processes, chunks of {chunksize}")
    with multiprocessing.Pool(processes=num_procs) as pool:
        return pool.map(job, days, chunksize=chunksize)


def aggregate(trials: Iterable[TrialResult]) -> AggregateStats:
    return reduce(lambda acc, t: acc + AggregateStats.from_trial(t), trials, AggregateStats())


def sweep(
    market: MarketData,
    policy: WithdrawalPolicy,
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[date] = None,
) -> List[TrialResult]:
    """One trial per start date of the window, run with the policy's worker and trace settings."""
    days = start_dates(market, start, end, now)
    logger.info(f"Backtesting {policy.name} policy on {len(days)} start dates {days[0]} .. {days[-1]}")
    p = policy.params
    return simulate_trials(days, policy, market, workers=p.workers, trace=p.trace)


def run_backtest(
    market: MarketData,
    policy: WithdrawalPolicy,
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[date] = None,
) -> AggregateStats:
    """Sweep every start date of the window and fold the outcomes into counters."""
    stats = aggregate(sweep(market, policy, start, end, now))
    logger.info(f"success = {stats.success}, failed = {stats.fail}, na = {stats.na}")
    return stats


def outcomes_frame(trials: List[TrialResult]) -> pd.DataFrame:
    """Per-start-date outcomes as a DataFrame indexed by start date."""
    frame = pd.DataFrame(
        {
            "outcome": [t.outcome.value for t in trials],
            "final_savings": [t.final_savings for t in trials],
            "min_applied": [t.min_applied for t in trials],
            "max_applied": [t.max_applied for t in trials],
        },
        index=pd.DatetimeIndex([pd.Timestamp(t.start) for t in trials], name="start"),
    )
    return frame
