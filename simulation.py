"""
Year-by-year simulation of one drawdown trial.

A trial opens on its start date with the first withdrawal, then advances one
calendar year per step until the horizon is reached, the money runs out, or
a required data point is missing.
"""

from __future__ import annotations
import enum
import io
from dataclasses import dataclass
from datetime import date
from typing import Optional

from historical_data import MarketData
from policy_base import SimulationRun, WithdrawalPolicy
from time_series import add_years


class Outcome(enum.Enum):
    NO_DATA = "na"
    SUCCESS = "success"
    FAIL = "fail"


@dataclass(frozen=True)
class TrialResult:
    start: date
    outcome: Outcome
    min_applied: int = 0
    max_applied: int = 0
    final_savings: float = 0.0
    trace: str = ""


class Trace:
    """Human-readable per-trial log; a disabled trace discards everything."""

    def __init__(self, enabled: bool = False) -> None:
        self.enabled = enabled
        self._buf = io.StringIO() if enabled else None

    def write(self, line: str = "") -> None:
        if self._buf is not None:
            self._buf.write(line + "\n")

    def getvalue(self) -> str:
        return self._buf.getvalue() if self._buf is not None else ""


def step_year(
    run: SimulationRun,
    policy: WithdrawalPolicy,
    market: MarketData,
    trace: Optional[Trace] = None,
) -> Optional[Outcome]:
    """
    Advance `run` by one simulated year.

    Returns None while the trial keeps running, otherwise its terminal outcome.
    """
    trace = trace or Trace()
    p = policy.params

    run.date = add_years(run.date, 1)
    trace.write(f"current date: {run.date.isoformat()}")

    found = market.prices.price_on_or_after(run.date)
    if found is None:
        trace.write(f"no more {market.prices.name} data")
        return Outcome.NO_DATA
    price_date, price = found

    # Inflation of the year just finished, from its last published month
    inflation = market.inflation_before(run.date)
    if inflation is None:
        trace.write("no more inflation data")
        return Outcome.NO_DATA
    trace.write(f"inflation: {inflation:.4%}")

    net_yield = 0.0
    if policy.uses_dividends:
        dividend_yield = market.dividend_yield_before(run.date)
        if dividend_yield is None:
            trace.write("no more dividend yield data")
            return Outcome.NO_DATA
        net_yield = dividend_yield * (1 - p.dividend_tax_rate)
        trace.write(f"dividend yield: {dividend_yield:.4%}, after tax: {net_yield:.4%}")

    if market.consumption is not None:
        consumption = market.consumption_at(run.date)
        if consumption is None:
            trace.write("no more consumption data")
            return Outcome.NO_DATA
        trace.write(f"consumption: {consumption:f}")

    trace.write(f"price on {price_date.isoformat()}: {price:f}")
    policy.grow(run, price, net_yield)
    trace.write(f"savings before withdrawal: {run.savings:f}")

    w = policy.step(run, inflation)
    trace.write(f"withdraw: {w.amount:f} (rate {w.applied_rate:.4%})")
    if policy.uses_dividends:
        trace.write(f"remain savings: {run.savings:f}")
    else:
        trace.write(f"sold shares: {w.sold_shares}")
        trace.write(f"remain shares: {run.shares}")

    if policy.holdings(run) <= 0:
        trace.write("run out of money")
        return Outcome.FAIL
    run.years_left -= 1
    if run.years_left <= 0:
        trace.write("pass the years")
        return Outcome.SUCCESS
    return None


def run_trial(start: date, policy: WithdrawalPolicy, market: MarketData, trace: bool = False) -> TrialResult:
    """Run one trial from `start` for the policy's horizon."""
    t = Trace(trace)
    run = policy.start_run(start)
    outcome = _run(run, policy, market, t)
    # Blank line between trials
    t.write()
    return TrialResult(
        start=start,
        outcome=outcome,
        min_applied=run.min_applied,
        max_applied=run.max_applied,
        final_savings=run.savings,
        trace=t.getvalue(),
    )


def _run(run: SimulationRun, policy: WithdrawalPolicy, market: MarketData, trace: Trace) -> Outcome:
    p = policy.params
    trace.write("initial conditions ===========================")
    trace.write(f"policy: {policy.name}")
    trace.write(f"capital: {p.initial_capital:f}")
    trace.write(f"start date: {run.date.isoformat()}")

    found = market.prices.price_on_or_after(run.date)
    if found is None:
        trace.write("no price for the date")
        return Outcome.NO_DATA
    price_date, price = found
    trace.write(f"price on {price_date.isoformat()}: {price:f}")

    w = policy.open(run, price)
    trace.write(f"withdraw: {w.amount:f}")
    if policy.uses_dividends:
        trace.write(f"init savings: {run.savings:f}")
    else:
        trace.write(f"init hold shares: {run.shares}")
    if policy.holdings(run) <= 0:
        trace.write("run out of money")
        return Outcome.FAIL

    while run.years_left > 0:
        trace.write()
        outcome = step_year(run, policy, market, trace)
        if outcome is not None:
            return outcome

    trace.write("pass the years")
    return Outcome.SUCCESS
