"""Chart generation using Plotly."""

from typing import Optional

import pandas as pd
import plotly.graph_objects as go

THEME = {
    "text": "#e8eaed",
    "text_secondary": "#9aa0a6",
    "grid": "rgba(30, 33, 36, 0.8)",
    "cyan": "#00d4ff",
    "cyan_fill": "rgba(0, 212, 255, 0.12)",
    "amber": "#ffab00",
    "red": "#ff5252",
}


def apply_dark_layout(fig: go.Figure, title: str, x_title: str, y_title: str, showlegend: bool = True) -> None:
    """Apply the dark theme layout shared by all charts."""
    fig.update_layout(
        title={
            "text": title,
            "x": 0,
            "xanchor": "left",
            "font": {"size": 11, "color": THEME["text_secondary"], "family": "Inter, -apple-system, sans-serif"}
        },
        xaxis_title=x_title,
        yaxis_title=y_title,
        hovermode="x unified",
        template="plotly_dark",
        height=340,
        margin=dict(l=50, r=20, t=40, b=40),
        showlegend=showlegend,
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="left", x=0),
        plot_bgcolor="rgba(8, 9, 10, 1)",
        paper_bgcolor="rgba(8, 9, 10, 1)",
        font={"color": THEME["text"], "family": "Inter, -apple-system, sans-serif", "size": 11},
        xaxis=dict(gridcolor=THEME["grid"], zerolinecolor=THEME["grid"]),
        yaxis=dict(gridcolor=THEME["grid"], zerolinecolor=THEME["grid"]),
    )


def create_vesting_chart(timeline: pd.DataFrame, symbol: str = "", cliff_days: Optional[float] = None) -> go.Figure:
    """Unlock curve from a `vesting_timeline` frame."""
    fig = go.Figure()

    fig.add_trace(go.Scatter(
        x=timeline['elapsed_days'],
        y=timeline['vested_tokens'],
        name='Vested',
        mode='lines',
        line=dict(color=THEME["cyan"], width=2, shape='hv'),
        fill='tozeroy',
        fillcolor=THEME["cyan_fill"]
    ))

    if cliff_days is not None:
        fig.add_vline(x=cliff_days, line=dict(color=THEME["amber"], width=1, dash='dot'))

    apply_dark_layout(fig, "Vesting Unlock", "Days since start", symbol or "Tokens", showlegend=False)
    return fig


def create_reward_chart(projection: pd.DataFrame, symbol: str = "") -> go.Figure:
    """Pending reward and boost multiplier from a `reward_projection` frame."""
    fig = go.Figure()

    fig.add_trace(go.Scatter(
        x=projection['day'],
        y=projection['pending_tokens'],
        name='Pending reward',
        mode='lines',
        line=dict(color=THEME["cyan"], width=2)
    ))

    fig.add_trace(go.Scatter(
        x=projection['day'],
        y=projection['multiplier'],
        name='Boost',
        mode='lines',
        yaxis='y2',
        line=dict(color=THEME["amber"], width=2, dash='dot', shape='hv')
    ))

    apply_dark_layout(fig, "Reward Accrual", "Days since checkpoint", symbol or "Reward")
    fig.update_layout(yaxis2=dict(title="Multiplier (x)", overlaying='y', side='right', showgrid=False))
    return fig
