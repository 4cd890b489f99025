from __future__ import annotations
from dataclasses import dataclass
from datetime import date

from params import Params


@dataclass(frozen=True)
class Rates:
    """Withdrawal rates carried from one period to the next."""

    rate: float = 0.0
    min_rate: float = 0.0
    max_rate: float = 0.0


@dataclass(frozen=True)
class RateDecision:
    applied_rate: float
    branch: str  # "fixed", "min" or "max"
    rates: Rates
    target: float


@dataclass
class SimulationRun:
    """Mutable state of one trial; only the year-step simulator and the policy touch it."""

    date: date
    years_left: int
    price: float = 0.0
    savings: float = 0.0
    shares: int = 0
    withdraw: float = 0.0
    target: float = 0.0
    rates: Rates = Rates()
    min_applied: int = 0
    max_applied: int = 0


@dataclass
class Withdrawal:
    amount: float
    applied_rate: float
    sold_shares: int = 0


class WithdrawalPolicy:
    """
    A withdrawal strategy behind the single interface the sweep uses.

    Subclasses decide how holdings are represented (savings or whole shares),
    which rate applies each period and how rates escalate with inflation.
    """

    name = "base"
    uses_dividends = True

    def __init__(self, p: Params):
        self.params = p

    def initial_rates(self) -> Rates:
        raise NotImplementedError

    def apply_period(self, savings: float, target: float, inflation: float, rates: Rates) -> RateDecision:
        """Pick this period's rate and escalate the rate state and target by `inflation`."""
        raise NotImplementedError

    def open(self, run: SimulationRun, price: float) -> Withdrawal:
        """Make the first withdrawal on the start date and invest the rest."""
        raise NotImplementedError

    def withdraw(self, run: SimulationRun, decision: RateDecision, inflation: float) -> Withdrawal:
        raise NotImplementedError

    def holdings(self, run: SimulationRun) -> float:
        return run.savings

    def grow(self, run: SimulationRun, price: float, net_yield: float) -> None:
        """Apply the year's price return plus dividend income to savings."""
        run.savings = run.savings * (price / run.price) + run.savings * net_yield
        run.price = price

    def start_run(self, start: date) -> SimulationRun:
        return SimulationRun(
            date=start,
            years_left=self.params.horizon_years - 1,
            target=self.params.initial_capital,
            rates=self.initial_rates(),
        )

    def step(self, run: SimulationRun, inflation: float) -> Withdrawal:
        """Decide the period's rate, record it on the run and withdraw."""
        decision = self.apply_period(self.holdings_value(run), run.target, inflation, run.rates)
        run.rates = decision.rates
        run.target = decision.target
        if decision.branch == "min":
            run.min_applied += 1
        elif decision.branch == "max":
            run.max_applied += 1
        return self.withdraw(run, decision, inflation)

    def holdings_value(self, run: SimulationRun) -> float:
        return run.savings
