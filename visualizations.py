"""
Charts for a historical drawdown backtest.
Shows which start dates survived and how the success rate moves over time.
"""

from __future__ import annotations
import math
from typing import Optional

import matplotlib.pyplot as plt
import pandas as pd

from backtest import AggregateStats
from params import Params

# Colorblind-friendly palette
COLORS = {
    'success': '#2ca02c',    # Green - Success trials
    'fail': '#d62728',       # Red - Failed trials
    'na': '#7f7f7f',         # Gray - Trials without data
    'rate': '#1f77b4',       # Blue - Rolling success rate
}

plt.rcParams.update({
    'font.size': 10,
    'axes.labelsize': 11,
    'axes.titlesize': 12,
    'legend.fontsize': 9,
    'axes.grid': True,
    'grid.alpha': 0.3,
    'axes.axisbelow': True
})


class BacktestVisualizer:
    """Outcome charts for one backtest run"""

    def __init__(self, params: Params) -> None:
        self.params = params
        self.fig_size = (12, 6)

    def format_currency(self, amount: float, suffix: str = "$") -> str:
        if not math.isfinite(amount):
            return "N/A"
        if abs(amount) >= 1_000_000:
            return f"{suffix}{amount/1_000_000:.1f}M"
        elif abs(amount) >= 1_000:
            return f"{suffix}{amount/1_000:.0f}K"
        return f"{suffix}{amount:,.0f}"

    def title(self) -> str:
        p = self.params
        if p.policy == "dual":
            rate = f"{p.min_rate:.1%}/{p.max_rate:.1%}"
        else:
            rate = f"{p.withdraw_rate:.1%}"
        return f"{self.format_currency(p.initial_capital)} at {rate} for {p.horizon_years} years ({p.policy})"

    def create_outcome_chart(self, outcomes: pd.DataFrame, stats: AggregateStats, window: Optional[int] = 365) -> plt.Figure:
        """
        Plot each start date's outcome and the rolling success rate.

        `outcomes` is the frame returned by backtest.outcomes_frame.
        """
        if outcomes.empty:
            raise ValueError("create_outcome_chart: outcomes cannot be empty")

        fig, (ax1, ax2) = plt.subplots(2, 1, figsize=self.fig_size, sharex=True, height_ratios=[1, 2])

        levels = {'success': 1, 'fail': 0, 'na': 0.5}
        for outcome, color in (('success', COLORS['success']), ('fail', COLORS['fail']), ('na', COLORS['na'])):
            subset = outcomes[outcomes['outcome'] == outcome]
            if subset.empty:
                continue
            ax1.scatter(subset.index, [levels[outcome]] * len(subset), s=2, color=color, label=outcome)
        ax1.set_yticks([0, 0.5, 1])
        ax1.set_yticklabels(['fail', 'no data', 'success'])
        ax1.legend(loc='upper right', markerscale=4)
        ax1.set_title(self.title())

        decided = outcomes[outcomes['outcome'] != 'na']
        if not decided.empty:
            survived = (decided['outcome'] == 'success').astype(float)
            rolling = survived.rolling(window or 1, min_periods=1).mean() * 100
            ax2.plot(rolling.index, rolling.values, color=COLORS['rate'], linewidth=1.5)
        if math.isfinite(stats.success_rate):
            ax2.axhline(stats.success_rate * 100, color=COLORS['na'], linestyle='--',
                        label=f"overall {stats.success_rate:.1%}")
            ax2.legend(loc='lower left')
        ax2.set_ylim(-5, 105)
        ax2.set_ylabel('Success rate (%)')
        ax2.set_xlabel('Start date')

        fig.tight_layout()
        return fig
