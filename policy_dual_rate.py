from policy_base import RateDecision, Rates, SimulationRun, Withdrawal, WithdrawalPolicy


class DualRatePolicy(WithdrawalPolicy):
    """
    Belt-tightening strategy with a low and a high withdrawal rate.

    Both rates and the savings target compound with inflation every period,
    whichever rate applied. Savings below the target withdraw at the min
    rate, otherwise at the max rate. The choice is made fresh each period.
    """

    name = "dual"

    def initial_rates(self) -> Rates:
        return Rates(min_rate=self.params.min_rate, max_rate=self.params.max_rate)

    def apply_period(self, savings: float, target: float, inflation: float, rates: Rates) -> RateDecision:
        escalated = Rates(
            rate=rates.rate,
            min_rate=rates.min_rate * (1 + inflation),
            max_rate=rates.max_rate * (1 + inflation),
        )
        new_target = target * (1 + inflation)
        if savings < new_target:
            return RateDecision(escalated.min_rate, "min", escalated, new_target)
        return RateDecision(escalated.max_rate, "max", escalated, new_target)

    def open(self, run: SimulationRun, price: float) -> Withdrawal:
        run.savings = self.params.initial_capital
        run.price = price
        return self.step(run, 0.0)

    def withdraw(self, run: SimulationRun, decision: RateDecision, inflation: float) -> Withdrawal:
        amount = self.params.initial_capital * decision.applied_rate
        run.withdraw = amount
        run.savings -= amount
        return Withdrawal(amount=amount, applied_rate=decision.applied_rate)
