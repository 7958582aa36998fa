"""
Performance statistics over a user's trade history.

Every ratio resolves to 0 when its denominator is 0 so callers can render
the numbers unconditionally.
"""
import math
from typing import Iterable, List

from pydantic import BaseModel

from outcome import classify


class TradeStats(BaseModel):
    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    breakevens: int = 0
    win_rate: float = 0.0
    total_pl: float = 0.0
    total_win_pl: float = 0.0
    total_loss_pl: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    profit_factor: float = 0.0
    expectancy: float = 0.0

    def rounded(self, ndigits: int = 2) -> "TradeStats":
        """Copy with every real-valued field rounded for display."""
        update = {
            name: round(value, ndigits)
            for name, value in self.model_dump().items()
            if isinstance(value, float)
        }
        return self.model_copy(update=update)


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def aggregate_stats(trades: Iterable) -> TradeStats:
    """Compute summary statistics for a set of trades.

    ``trades`` may hold ``schemas.Trade`` models or anything exposing a
    ``profit_loss`` attribute. The result does not depend on the order of
    the trades: sums use ``math.fsum``, which is exactly rounded.
    """
    pnls: List[float] = [t.profit_loss for t in trades]
    if not pnls:
        return TradeStats()

    win_pnls = [p for p in pnls if classify(p) == 'win']
    loss_pnls = [p for p in pnls if classify(p) == 'loss']

    total_trades = len(pnls)
    wins, losses = len(win_pnls), len(loss_pnls)
    total_pl = math.fsum(pnls)
    total_win_pl = math.fsum(win_pnls)
    total_loss_pl = abs(math.fsum(loss_pnls))

    return TradeStats(
        total_trades=total_trades,
        wins=wins,
        losses=losses,
        breakevens=total_trades - wins - losses,
        win_rate=_ratio(wins, total_trades) * 100,
        total_pl=total_pl,
        total_win_pl=total_win_pl,
        total_loss_pl=total_loss_pl,
        avg_win=_ratio(total_win_pl, wins),
        avg_loss=_ratio(total_loss_pl, losses),
        largest_win=max(win_pnls) if win_pnls else 0.0,
        largest_loss=abs(min(loss_pnls)) if loss_pnls else 0.0,
        profit_factor=_ratio(total_win_pl, total_loss_pl),
        expectancy=_ratio(total_pl, total_trades),
    )
