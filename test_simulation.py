import unittest
from datetime import date

from historical_data import MarketData
from params import Params
from policy_dual_rate import DualRatePolicy
from policy_fixed_rate import FixedRatePolicy
from simulation import Outcome, run_trial, step_year
from time_series import AnnualRateSeries, DailyPriceSeries, PeriodSeries


def _yearly_prices(prices):
    return DailyPriceSeries({date(year, 1, 1): price for year, price in prices.items()})


class TestFixedRateTrial(unittest.TestCase):
    def setUp(self):
        self.params = Params(initial_capital=1_000_000, withdraw_rate=0.04, horizon_years=2, dividend_tax_rate=0.0)
        self.market = MarketData(
            prices=_yearly_prices({2020: 100.0, 2021: 110.0}),
            inflation=AnnualRateSeries({2020: 0.05}),
            dividend_yield=AnnualRateSeries({2020: 0.02}),
        )

    def test_two_year_scenario(self):
        """Open with 9600 shares, sell ceil(42000 / 110) = 382 a year later."""
        policy = FixedRatePolicy(self.params)
        run = policy.start_run(date(2020, 1, 1))
        w = policy.open(run, 100.0)
        self.assertEqual(w.amount, 40000)
        self.assertEqual(run.shares, 9600)

        outcome = step_year(run, policy, self.market)
        self.assertEqual(outcome, Outcome.SUCCESS)
        self.assertEqual(run.date, date(2021, 1, 1))
        self.assertAlmostEqual(run.withdraw, 42000)
        self.assertEqual(run.shares, 9218)

    def test_run_trial(self):
        result = run_trial(date(2020, 1, 1), FixedRatePolicy(self.params), self.market, trace=True)
        self.assertEqual(result.outcome, Outcome.SUCCESS)
        self.assertAlmostEqual(result.final_savings, 9218 * 110.0)
        self.assertIn("init hold shares: 9600", result.trace)
        self.assertIn("sold shares: 382", result.trace)
        self.assertIn("remain shares: 9218", result.trace)
        self.assertIn("pass the years", result.trace)

    def test_trace_disabled_by_default(self):
        result = run_trial(date(2020, 1, 1), FixedRatePolicy(self.params), self.market)
        self.assertEqual(result.trace, "")

    def test_one_year_horizon_needs_only_the_start_price(self):
        p = Params(initial_capital=1000, withdraw_rate=0.04, horizon_years=1)
        market = MarketData(prices=_yearly_prices({2020: 100.0}), inflation=AnnualRateSeries({2019: 0.0}))
        self.assertEqual(run_trial(date(2020, 1, 1), FixedRatePolicy(p), market).outcome, Outcome.SUCCESS)

    def test_start_after_last_price_is_no_data(self):
        result = run_trial(date(2021, 1, 2), FixedRatePolicy(self.params), self.market, trace=True)
        self.assertEqual(result.outcome, Outcome.NO_DATA)
        self.assertIn("no price for the date", result.trace)

    def test_price_running_out_is_no_data(self):
        # Opens on the 2021 price, then needs a 2022 price
        result = run_trial(date(2020, 6, 1), FixedRatePolicy(self.params), self.market)
        self.assertEqual(result.outcome, Outcome.NO_DATA)

    def test_cannot_afford_a_share_fails(self):
        p = Params(initial_capital=150, withdraw_rate=0.5, horizon_years=3)
        result = run_trial(date(2020, 1, 1), FixedRatePolicy(p), self.market)
        self.assertEqual(result.outcome, Outcome.FAIL)

    def test_crash_runs_out_of_money(self):
        p = Params(initial_capital=1000, withdraw_rate=0.5, horizon_years=3)
        market = MarketData(
            prices=_yearly_prices({2000: 100.0, 2001: 10.0, 2002: 10.0}),
            inflation=AnnualRateSeries({2000: 0.0, 2001: 0.0}),
        )
        # 5 shares bought, 50 needed a year later
        result = run_trial(date(2000, 1, 1), FixedRatePolicy(p), market, trace=True)
        self.assertEqual(result.outcome, Outcome.FAIL)
        self.assertIn("run out of money", result.trace)

    def test_missing_inflation_is_no_data(self):
        """A horizon reaching one year past the inflation data is NO_DATA, never FAIL or SUCCESS."""
        p = Params(initial_capital=1000, withdraw_rate=0.01, horizon_years=4)
        market = MarketData(
            prices=_yearly_prices({y: 100.0 for y in range(2000, 2006)}),
            inflation=AnnualRateSeries({2000: 0.02, 2001: 0.02}),
        )
        result = run_trial(date(2000, 1, 1), FixedRatePolicy(p), market, trace=True)
        self.assertEqual(result.outcome, Outcome.NO_DATA)
        self.assertIn("no more inflation data", result.trace)

        # One year shorter fits the data
        p = Params(initial_capital=1000, withdraw_rate=0.01, horizon_years=3)
        self.assertEqual(run_trial(date(2000, 1, 1), FixedRatePolicy(p), market).outcome, Outcome.SUCCESS)

    def test_monthly_inflation_uses_month_before(self):
        market = MarketData(
            prices=_yearly_prices({2020: 100.0, 2021: 110.0}),
            inflation=PeriodSeries({date(2020, 12, 1): 0.05, date(2021, 1, 1): 0.50}, freq="M"),
        )
        policy = FixedRatePolicy(self.params)
        run = policy.start_run(date(2020, 1, 1))
        policy.open(run, 100.0)
        self.assertEqual(step_year(run, policy, market), Outcome.SUCCESS)
        self.assertAlmostEqual(run.withdraw, 42000)

    def test_success_when_savings_stay_positive(self):
        p = Params(initial_capital=100_000, withdraw_rate=0.03, horizon_years=10)
        market = MarketData(
            prices=_yearly_prices({y: 100.0 * 1.05 ** (y - 2000) for y in range(2000, 2011)}),
            inflation=AnnualRateSeries({y: 0.02 for y in range(2000, 2010)}),
        )
        result = run_trial(date(2000, 1, 1), FixedRatePolicy(p), market)
        self.assertEqual(result.outcome, Outcome.SUCCESS)
        self.assertGreater(result.final_savings, 0)


class TestDualRateTrial(unittest.TestCase):
    def setUp(self):
        self.params = Params(
            policy="dual", initial_capital=1000, min_rate=0.03, max_rate=0.05,
            dividend_tax_rate=0.5, horizon_years=2,
        )
        self.inflation = AnnualRateSeries({2000: 0.10})
        self.dividends = AnnualRateSeries({2000: 0.04})

    def _market(self, later_price):
        return MarketData(
            prices=DailyPriceSeries({date(2000, 1, 3): 100.0, date(2001, 1, 2): later_price}),
            inflation=self.inflation,
            dividend_yield=self.dividends,
        )

    def test_ahead_of_target_withdraws_max_rate(self):
        result = run_trial(date(2000, 1, 1), DualRatePolicy(self.params), self._market(120.0))
        self.assertEqual(result.outcome, Outcome.SUCCESS)
        # 950 * 1.2 + 950 * 0.04 * 0.5 = 1159, above the 1100 target; withdraw 1000 * 0.055
        self.assertAlmostEqual(result.final_savings, 1159 - 55)
        self.assertEqual(result.max_applied, 2)
        self.assertEqual(result.min_applied, 0)

    def test_behind_target_withdraws_min_rate(self):
        result = run_trial(date(2000, 1, 1), DualRatePolicy(self.params), self._market(80.0))
        self.assertEqual(result.outcome, Outcome.SUCCESS)
        # 950 * 0.8 + 19 = 779, below 1100; withdraw 1000 * 0.033
        self.assertAlmostEqual(result.final_savings, 779 - 33)
        self.assertEqual(result.max_applied, 1)
        self.assertEqual(result.min_applied, 1)

    def test_missing_dividend_yield_is_no_data(self):
        market = MarketData(
            prices=DailyPriceSeries({date(2000, 1, 3): 100.0, date(2001, 1, 2): 100.0}),
            inflation=self.inflation,
            dividend_yield=AnnualRateSeries({1999: 0.04}),
        )
        result = run_trial(date(2000, 1, 1), DualRatePolicy(self.params), market, trace=True)
        self.assertEqual(result.outcome, Outcome.NO_DATA)
        self.assertIn("no more dividend yield data", result.trace)

    def test_absent_dividend_series_is_no_data(self):
        market = MarketData(
            prices=DailyPriceSeries({date(2000, 1, 3): 100.0, date(2001, 1, 2): 100.0}),
            inflation=self.inflation,
        )
        result = run_trial(date(2000, 1, 1), DualRatePolicy(self.params), market, trace=True)
        self.assertEqual(result.outcome, Outcome.NO_DATA)
        self.assertIn("no more dividend yield data", result.trace)

    def test_fixed_rate_runs_without_dividend_series(self):
        p = Params(initial_capital=1000, withdraw_rate=0.04, horizon_years=2)
        market = MarketData(
            prices=DailyPriceSeries({date(2000, 1, 3): 100.0, date(2001, 1, 2): 100.0}),
            inflation=self.inflation,
        )
        self.assertEqual(run_trial(date(2000, 1, 1), FixedRatePolicy(p), market).outcome, Outcome.SUCCESS)

    def test_trials_end_with_one_blank_line(self):
        result = run_trial(date(2000, 1, 1), DualRatePolicy(self.params), self._market(120.0), trace=True)
        self.assertTrue(result.trace.endswith("pass the years\n\n"))
        self.assertFalse(result.trace.endswith("\n\n\n"))

    def test_missing_consumption_is_no_data(self):
        market = MarketData(
            prices=DailyPriceSeries({date(2000, 1, 3): 100.0, date(2001, 1, 2): 100.0}),
            inflation=self.inflation,
            dividend_yield=self.dividends,
            consumption=PeriodSeries({date(2000, 1, 1): 6500.0}, freq="Q"),
        )
        result = run_trial(date(2000, 1, 1), DualRatePolicy(self.params), market)
        self.assertEqual(result.outcome, Outcome.NO_DATA)

    def test_depleted_savings_fail(self):
        p = Params(policy="dual", initial_capital=1000, min_rate=0.5, max_rate=0.9, horizon_years=3)
        market = self._market(10.0)
        result = run_trial(date(2000, 1, 1), DualRatePolicy(p), market)
        self.assertEqual(result.outcome, Outcome.FAIL)


if __name__ == '__main__':
    unittest.main()
