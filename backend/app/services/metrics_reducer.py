"""Order aggregation for the shop analytics summary.

WHAT:
    Folds a list of Shopify orders (already enriched with refunds) into
    order count, gross revenue, average order value, refunded amount and
    net revenue.

WHY:
    Kept free of I/O so the arithmetic can be tested on plain dicts.

NOTES:
    - Money is summed as Decimal; floats only appear at the response edge.
    - Each reported figure is rounded to cents on its own (ROUND_HALF_UP),
      with enough precision that large amounts never raise.
    - Currency is last-write-wins: the currency of the last order seen.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any, Iterable, Mapping, Optional

CENTS = Decimal("0.01")
ZERO = Decimal("0")

# Amounts above 10**MAX_MONEY_EXPONENT are treated as unparsable
MAX_MONEY_EXPONENT = 1000


@dataclass(frozen=True)
class OrderTotals:
    """Aggregated figures for a list of orders."""

    orders_count: int
    gross_revenue: Decimal
    currency: str
    avg_order_value: Decimal
    refunded_amount: Decimal
    net_revenue: Decimal


def parse_money(value: Any) -> Decimal:
    """Parse a Shopify money string; anything unparsable, non-finite or absurdly large counts as 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    if not amount.is_finite() or amount.adjusted() > MAX_MONEY_EXPONENT:
        return ZERO
    return amount


def _cents_precision(*values: Decimal) -> int:
    """Digits needed to hold every value at cent scale (never below the default 28)."""
    return max([28] + [v.adjusted() + 4 for v in values if v])


def round_money(value: Decimal) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _cents_precision(value)
        return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _subtract_money(minuend: Decimal, subtrahend: Decimal) -> Decimal:
    """Exact difference of two cent-scale amounts."""
    with localcontext() as ctx:
        ctx.prec = _cents_precision(minuend, subtrahend)
        return minuend - subtrahend


def refund_amount(refund: Mapping[str, Any]) -> Decimal:
    """Amount of one refund, read from total_refunded_set.shop_money.amount."""
    if not isinstance(refund, Mapping):
        return ZERO
    money_set = refund.get("total_refunded_set")
    if not isinstance(money_set, Mapping):
        return ZERO
    shop_money = money_set.get("shop_money")
    if not isinstance(shop_money, Mapping):
        return ZERO
    return parse_money(shop_money.get("amount"))


def reduce_orders(
    orders: Iterable[Mapping[str, Any]],
    fallback_currency: str = "CAD",
) -> OrderTotals:
    """Aggregate orders in a single pass.

    Args:
        orders: Orders in processing order. Iteration order only affects
            the reported currency.
        fallback_currency: Currency reported when no order carries one.
    """
    gross = ZERO
    refunded = ZERO
    currency: Optional[str] = None
    count = 0

    for order in orders:
        count += 1
        gross += parse_money(order.get("total_price"))

        if order.get("currency"):
            currency = order["currency"]

        for refund in order.get("refunds") or []:
            refunded += refund_amount(refund)

    avg = gross / count if count > 0 else ZERO

    gross_rounded = round_money(gross)
    refunded_rounded = round_money(refunded)

    return OrderTotals(
        orders_count=count,
        gross_revenue=gross_rounded,
        currency=currency or fallback_currency,
        avg_order_value=round_money(avg),
        refunded_amount=refunded_rounded,
        net_revenue=_subtract_money(gross_rounded, refunded_rounded),
    )
