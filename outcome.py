"""
Trade outcome derivation.

Turns the raw inputs of a closed trade (direction, entry/exit price, share
count) into its profit/loss and win/loss/breakeven classification. The write
path calls ``derive_trade`` before every insert and update so the stored
derived fields never go stale.
"""
import math
from typing import Any, Dict, Literal, Mapping, NamedTuple

from errors import ValidationError

Direction = Literal['long', 'short']
Result = Literal['win', 'loss', 'breakeven']

DIRECTIONS = ('long', 'short')


class Outcome(NamedTuple):
    profit_loss: float
    result: Result


def is_finite_number(value: Any) -> bool:
    """True for ints and floats (not bools) that fit in a finite float."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _check_price(name: str, value: Any) -> None:
    if not is_finite_number(value) or value <= 0:
        raise ValidationError(f"{name} must be a positive number, got {value!r}")


def _check_shares(value: Any) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise ValidationError(f"shares must be a whole number >= 1, got {value!r}")


def classify(profit_loss: float) -> Result:
    """Map a profit/loss to its result. Exactly zero is breakeven."""
    if profit_loss > 0:
        return 'win'
    if profit_loss < 0:
        return 'loss'
    return 'breakeven'


def compute_outcome(direction: str, entry_price: float, exit_price: float, shares: int) -> Outcome:
    """Compute profit/loss and result for a single closed trade.

    long:  (exit_price - entry_price) * shares
    short: (entry_price - exit_price) * shares

    No rounding is applied. Raises ``ValidationError`` when any input is out
    of constraint; inputs are never coerced.
    """
    if direction not in DIRECTIONS:
        raise ValidationError(f"direction must be one of {DIRECTIONS}, got {direction!r}")
    _check_price("entry_price", entry_price)
    _check_price("exit_price", exit_price)
    _check_shares(shares)

    try:
        if direction == 'long':
            profit_loss = (exit_price - entry_price) * shares
        else:
            profit_loss = (entry_price - exit_price) * shares
    except OverflowError:
        profit_loss = math.inf
    if not is_finite_number(profit_loss):
        raise ValidationError("profit_loss is out of range for these prices and shares")
    return Outcome(profit_loss=profit_loss, result=classify(profit_loss))


def derive_trade(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``fields`` with ``profit_loss`` and ``result`` recomputed.

    Any derived values already present in ``fields`` are discarded.
    """
    missing = [k for k in ('direction', 'entry_price', 'exit_price', 'shares') if fields.get(k) is None]
    if missing:
        raise ValidationError(f"missing trade fields: {', '.join(missing)}")
    outcome = compute_outcome(
        fields['direction'], fields['entry_price'], fields['exit_price'], fields['shares'],
    )
    derived = dict(fields)
    derived['profit_loss'] = outcome.profit_loss
    derived['result'] = outcome.result
    return derived
