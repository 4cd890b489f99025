from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from errors import ConfigurationError

POLICIES = ("fixed", "dual")


@dataclass(frozen=True)
class Params:
    # Capital and horizon
    initial_capital: float = 1_000_000
    horizon_years: int = 30

    # Withdrawal rates (fractions of initial capital)
    withdraw_rate: float = 0.04  # fixed-rate policy
    min_rate: float = 0.035  # dual-rate policy, savings behind target
    max_rate: float = 0.045  # dual-rate policy, savings on or ahead of target

    # Taxes
    dividend_tax_rate: float = 0.15  # dual-rate policy only

    policy: str = "fixed"

    # Data sources
    source: str = "csv"  # "csv" or "fred"
    price_file: str = "./SANDP500.csv"
    price_column: int = 4  # close price in Yahoo-style exports
    inflation_file: str = "./USInflationRate.csv"
    inflation_layout: str = "monthly"  # "monthly" (year + 12 columns) or "annual"
    dividend_file: Optional[str] = "./SANDP500DividendYield.csv"
    consumption_file: Optional[str] = None
    price_series_id: str = "SP500"  # FRED
    cpi_series_id: str = "CPIAUCSL"  # FRED

    # Execution
    workers: Optional[int] = None  # None = one process per core
    trace: bool = False
    trace_dir: str = "."
    chart: Optional[str] = None

    def validate(self) -> "Params":
        """Check the parameters and return self, raising ConfigurationError on the first problem."""
        if not self.initial_capital > 0:
            raise ConfigurationError(f"initial capital must be positive, got {self.initial_capital}")
        if self.horizon_years < 1:
            raise ConfigurationError(f"horizon must be at least one year, got {self.horizon_years}")
        if self.policy not in POLICIES:
            raise ConfigurationError(f"unknown policy {self.policy!r}, expected one of {', '.join(POLICIES)}")
        if self.policy == "fixed":
            _check_rate("withdraw rate", self.withdraw_rate)
        else:
            _check_rate("min rate", self.min_rate)
            _check_rate("max rate", self.max_rate)
            if self.min_rate > self.max_rate:
                raise ConfigurationError(
                    f"min rate {self.min_rate} is greater than max rate {self.max_rate}"
                )
        if not 0 <= self.dividend_tax_rate <= 1:
            raise ConfigurationError(f"dividend tax rate must be within [0, 1], got {self.dividend_tax_rate}")
        if self.source not in ("csv", "fred"):
            raise ConfigurationError(f"unknown data source {self.source!r}")
        if self.inflation_layout not in ("monthly", "annual"):
            raise ConfigurationError(f"unknown inflation layout {self.inflation_layout!r}")
        if self.price_column < 1:
            raise ConfigurationError(f"price column must be at least 1, got {self.price_column}")
        if self.workers is not None and self.workers < 1:
            raise ConfigurationError(f"workers must be positive, got {self.workers}")
        return self


def _check_rate(name: str, rate: float) -> None:
    if not 0 < rate < 1:
        raise ConfigurationError(f"{name} must be a fraction within (0, 1), got {rate}")
