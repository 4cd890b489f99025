import math

from policy_base import RateDecision, Rates, SimulationRun, Withdrawal, WithdrawalPolicy


class FixedRatePolicy(WithdrawalPolicy):
    """Constant real-dollar withdrawal paid by selling whole shares."""

    name = "fixed"
    uses_dividends = False

    def initial_rates(self) -> Rates:
        return Rates(rate=self.params.withdraw_rate)

    def apply_period(self, savings: float, target: float, inflation: float, rates: Rates) -> RateDecision:
        # The rate never escalates; the running withdrawal amount does.
        return RateDecision(
            applied_rate=rates.rate,
            branch="fixed",
            rates=rates,
            target=target * (1 + inflation),
        )

    def open(self, run: SimulationRun, price: float) -> Withdrawal:
        capital = self.params.initial_capital
        run.withdraw = capital * run.rates.rate
        # Never buy more shares than affordable
        run.shares = int(math.floor((capital - run.withdraw) / price))
        run.price = price
        run.savings = run.shares * price
        return Withdrawal(amount=run.withdraw, applied_rate=run.rates.rate)

    def withdraw(self, run: SimulationRun, decision: RateDecision, inflation: float) -> Withdrawal:
        run.withdraw *= 1 + inflation
        # Never sell a fractional share; round towards covering the whole withdrawal
        sold = int(math.ceil(run.withdraw / run.price))
        run.shares -= sold
        run.savings = run.shares * run.price
        return Withdrawal(amount=run.withdraw, applied_rate=decision.applied_rate, sold_shares=sold)

    def holdings(self, run: SimulationRun) -> float:
        return run.shares

    def holdings_value(self, run: SimulationRun) -> float:
        return run.shares * run.price

    def grow(self, run: SimulationRun, price: float, net_yield: float) -> None:
        run.price = price
        run.savings = run.shares * price
