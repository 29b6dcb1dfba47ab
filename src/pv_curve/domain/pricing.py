"""Linear bonding curve pricing — pure functions, no I/O.

    price(supply) = base_price + price_step * supply

BUY (spend U USDP starting at price P = price(supply)):
    cost(q) = P*q + price_step*q**2/2 = U
    q = (-P + sqrt(P**2 + 2*price_step*U)) / price_step

SELL (return q PV starting at price P):
    payout(q) = P*q - price_step*q**2/2     (area from supply-q to supply)

Quantities and payouts are truncated so the curve never pays out more than
it has taken in. The new price is always recomputed from the new supply;
current_price is a cache, never advanced incrementally.
"""

from decimal import Decimal

from src.pv_common.decimals import (
    CURVE_CONTEXT,
    PV_QUANTUM,
    ZERO,
    floor_avg_price,
    floor_pv,
    floor_usdp,
)
from src.pv_common.errors import CurveError
from src.pv_curve.domain.models import BuyResult, CurveState, SellResult


def buy_cost(tokens: Decimal, current_price: Decimal, price_step: Decimal) -> Decimal:
    """Exact USDP cost of buying `tokens` PV starting at `current_price`."""
    ctx = CURVE_CONTEXT
    return ctx.add(
        ctx.multiply(current_price, tokens),
        ctx.divide(ctx.multiply(price_step, ctx.multiply(tokens, tokens)), Decimal(2)),
    )


def tokens_for_usdp(usdp_amount: Decimal, current_price: Decimal, price_step: Decimal) -> Decimal:
    """PV purchasable for `usdp_amount` at `current_price`, truncated to 6dp."""
    if usdp_amount <= 0:
        raise CurveError(f"buy amount must be positive, got {usdp_amount}")
    if price_step <= 0:
        raise CurveError(f"price step must be positive, got {price_step}")

    ctx = CURVE_CONTEXT
    discriminant = ctx.add(
        ctx.multiply(current_price, current_price),
        ctx.multiply(ctx.multiply(Decimal(2), price_step), usdp_amount),
    )
    if discriminant < 0:
        raise CurveError("discriminant is negative")

    raw = ctx.divide(ctx.subtract(discriminant.sqrt(ctx), current_price), price_step)
    tokens = floor_pv(max(ZERO, raw))
    # sqrt rounds to nearest; step back one quantum if that overshot the budget
    if tokens > 0 and buy_cost(tokens, current_price, price_step) > usdp_amount:
        tokens -= PV_QUANTUM
    return tokens


def usdp_for_tokens(tokens_amount: Decimal, current_price: Decimal, price_step: Decimal) -> Decimal:
    """USDP paid out for returning `tokens_amount` PV, truncated to 2dp."""
    if tokens_amount <= 0:
        raise CurveError(f"sell amount must be positive, got {tokens_amount}")
    if price_step <= 0:
        raise CurveError(f"price step must be positive, got {price_step}")

    ctx = CURVE_CONTEXT
    end_price = ctx.subtract(current_price, ctx.multiply(tokens_amount, price_step))
    if end_price < 0:
        raise CurveError("sell would drive price below zero")

    # Trapezoid: average of start and end price times quantity
    area = ctx.divide(ctx.multiply(ctx.add(current_price, end_price), tokens_amount), Decimal(2))
    return floor_usdp(max(ZERO, area))


def quote_buy(usdp_amount: Decimal, state: CurveState) -> BuyResult:
    start_price = state.recomputed_price
    tokens = tokens_for_usdp(usdp_amount, start_price, state.price_step)
    if tokens <= 0:
        raise CurveError(f"{usdp_amount} USDP is too small to buy any {state.ticker}")

    new_supply = state.current_supply + tokens
    new_price = state.price_at(new_supply)
    return BuyResult(
        tokens_received=tokens,
        new_price=new_price,
        new_supply=new_supply,
        new_total_usdp=state.total_usdp + usdp_amount,
        avg_price_paid=floor_avg_price(CURVE_CONTEXT.divide(usdp_amount, tokens)),
        start_price=start_price,
        end_price=new_price,
    )


def quote_sell(tokens_amount: Decimal, state: CurveState) -> SellResult:
    if tokens_amount > state.current_supply:
        raise CurveError(
            f"cannot sell {tokens_amount} {state.ticker}; supply is {state.current_supply}"
        )

    start_price = state.recomputed_price
    usdp_received = usdp_for_tokens(tokens_amount, start_price, state.price_step)
    if usdp_received <= 0:
        raise CurveError(f"{tokens_amount} {state.ticker} is too small to sell for any USDP")
    new_total_usdp = state.total_usdp - usdp_received
    if new_total_usdp < 0:
        raise CurveError(
            f"payout {usdp_received} exceeds curve reserve {state.total_usdp} for {state.ticker}"
        )

    new_supply = state.current_supply - tokens_amount
    new_price = state.price_at(new_supply)
    return SellResult(
        usdp_received=usdp_received,
        new_price=new_price,
        new_supply=new_supply,
        new_total_usdp=new_total_usdp,
        avg_price_paid=floor_avg_price(CURVE_CONTEXT.divide(usdp_received, tokens_amount)),
        start_price=start_price,
        end_price=new_price,
    )


def weighted_cost_basis(
    held: Decimal, basis: Decimal, added: Decimal, price: Decimal
) -> Decimal:
    """Blended average cost after adding `added` PV bought at `price`."""
    total = held + added
    if total == 0:
        return ZERO
    return floor_avg_price(CURVE_CONTEXT.divide(held * basis + added * price, total))
