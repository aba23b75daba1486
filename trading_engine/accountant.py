"""
Trading Engine - Position Accountant.

============================================================
PURPOSE
============================================================
Pure money arithmetic for fills. No I/O, no locks.

RULES:
- Money is Decimal at a fixed scale, ROUND_HALF_UP
- total_amount = round(fill_price * quantity)
- Buy into an existing position:
      new_qty = old_qty + qty
      new_avg = round((old_avg * old_qty + total_amount) / new_qty)
  using pre-trade values and rounding once
- Sell keeps the average cost; new_qty == 0 closes the position
- Amounts stay within the money column (18 digits, 2 decimal)
  and quantities within the quantity column

============================================================
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from core.exceptions import InvalidAmount
from database.models import MAX_QUANTITY, MONEY_PRECISION


@dataclass(frozen=True)
class PositionState:
    """Quantity and average cost of a holding (quantity 0 = closed)."""

    quantity: int
    average_cost: Decimal

    @property
    def is_closed(self) -> bool:
        return self.quantity == 0


class PositionAccountant:
    """
    Computes fills against a position.

    Usage:
        accountant = PositionAccountant()
        total = accountant.total_amount(price, 10)
        state = accountant.apply_buy(None, price, 10, total)
    """

    def __init__(self, money_scale: int = 2):
        self._quantum = Decimal(1).scaleb(-money_scale)
        self.max_amount = Decimal(10) ** (MONEY_PRECISION - money_scale) - self._quantum

    def quantize(self, amount: Decimal) -> Decimal:
        """
        Round a money amount to the ledger scale.

        Raises:
            InvalidAmount: NaN, infinite, or too many digits to round
        """
        value = Decimal(amount)
        if not value.is_finite():
            raise InvalidAmount(f"Amount {amount} is not finite", field="amount", value=amount)
        try:
            return value.quantize(self._quantum, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise InvalidAmount(f"Amount {amount} is out of range", field="amount", value=amount)

    def check_amount(self, amount: Decimal, field_name: str = "amount") -> Decimal:
        """Reject amounts the money column cannot hold."""
        if abs(amount) > self.max_amount:
            raise InvalidAmount(
                f"{field_name} exceeds the ledger maximum of {self.max_amount}",
                field=field_name,
                value=amount,
            )
        return amount

    def total_amount(self, fill_price: Decimal, quantity: int) -> Decimal:
        """Cash effect of a fill."""
        total = self.check_amount(fill_price * quantity, "total_amount")
        return self.check_amount(self.quantize(total), "total_amount")

    def apply_buy(
        self,
        current: Optional[PositionState],
        fill_price: Decimal,
        quantity: int,
        total_amount: Decimal,
    ) -> PositionState:
        """
        Position after buying quantity at fill_price.

        Args:
            current: Pre-trade position, None if not held
            fill_price: Execution price (money scale)
            quantity: Shares bought
            total_amount: total_amount(fill_price, quantity)
        """
        if quantity <= 0:
            raise InvalidAmount("Quantity must be positive", field="quantity", value=quantity)

        if current is None or current.is_closed:
            return PositionState(quantity=quantity, average_cost=self.quantize(fill_price))

        new_quantity = current.quantity + quantity
        if new_quantity > MAX_QUANTITY:
            raise InvalidAmount(
                f"Position would exceed {MAX_QUANTITY} shares", field="quantity", value=new_quantity
            )
        cost_basis = current.average_cost * current.quantity + total_amount
        return PositionState(
            quantity=new_quantity,
            average_cost=self.quantize(cost_basis / new_quantity),
        )

    def apply_sell(self, current: PositionState, quantity: int) -> PositionState:
        """
        Position after selling quantity.

        The caller checks current.quantity >= quantity first.
        """
        if quantity <= 0:
            raise InvalidAmount("Quantity must be positive", field="quantity", value=quantity)
        if quantity > current.quantity:
            raise ValueError(f"Cannot sell {quantity} of {current.quantity}")

        return PositionState(
            quantity=current.quantity - quantity,
            average_cost=current.average_cost,
        )
