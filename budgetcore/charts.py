"""Plotly chart helpers for the spending dashboard.

The breakdown is first flattened into parallel ``labels``/``values``/``colors``
lists, which is also the payload the HTTP API hands to browser charting
widgets. :func:`build_doughnut` turns that series into a Plotly figure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Sequence

import plotly.graph_objects as go

from .aggregation import CategoryLookup, category_breakdown
from .models import Expense

EMPTY_TITLE = "No expenses in selected period"


@dataclass(frozen=True)
class ChartSeries:
    labels: List[str] = field(default_factory=list)
    values: List[Decimal] = field(default_factory=list)
    colors: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.values

    def to_dict(self) -> Dict[str, Any]:
        return {
            "labels": list(self.labels),
            "values": [f"{value:.2f}" for value in self.values],
            "colors": list(self.colors),
        }


def chart_series(expenses: Sequence[Expense], categories: CategoryLookup) -> ChartSeries:
    rows = category_breakdown(expenses, categories)
    return ChartSeries(
        labels=[row.name for row in rows],
        values=[row.amount for row in rows],
        colors=[row.color for row in rows],
    )


def build_doughnut(series: ChartSeries, currency_symbol: str = "₹", title: str = "Spending by category") -> go.Figure:
    """Generate a doughnut chart of spending per category.

    Parameters
    ----------
    series : ChartSeries
        Parallel labels, amounts and slice colours.
    currency_symbol : str
        Prefix used for amounts in the hover text.
    title : str
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Doughnut chart whose hover text shows label, amount and share of total.
    """
    if series.is_empty:
        fig = go.Figure()
        fig.update_layout(title=EMPTY_TITLE)
        return fig
    fig = go.Figure(
        go.Pie(
            labels=series.labels,
            values=[float(value) for value in series.values],
            hole=0.5,
            sort=False,
            marker=dict(colors=series.colors, line=dict(color="#ffffff", width=2)),
            hovertemplate=(
                "%{label}: " + currency_symbol + "%{value:.2f} (%{percent:.1%})<extra></extra>"
            ),
        )
    )
    fig.update_layout(
        title=title,
        showlegend=True,
        legend=dict(orientation="v", x=1.02, y=0.5),
    )
    return fig
