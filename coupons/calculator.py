# coupons/calculator.py
"""
Per-type discount computation.

Every function here is pure: it takes a coupon, the priced cart lines and the
category map and returns a ``DiscountResult`` without touching the database.
Money stays unrounded until the coupon's total, which is rounded half-up to
cents; the total is then split over lines in whole cents (largest remainder)
so line amounts always add up to the total.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP

from .cart import CENT, ZERO
from .models import DiscountType

HUNDRED = Decimal('100')


@dataclass(frozen=True)
class PricedLine:
    """A cart line and what is left of its total after earlier coupons."""
    line: object
    remaining: Decimal

    @property
    def index(self):
        return self.line.index

    @property
    def sku(self):
        return self.line.sku

    @property
    def key(self):
        return self.line.key

    @property
    def quantity(self):
        return self.line.quantity

    @property
    def unit_price(self):
        return self.remaining / self.quantity


@dataclass(frozen=True)
class DiscountedItem:
    sku: str
    quantity: int
    unit_price: Decimal
    discount_amount: Decimal


@dataclass
class DiscountResult:
    discount_amount: Decimal
    subtotal: Decimal
    items: list = field(default_factory=list)
    allocations: dict = field(default_factory=dict)

    @property
    def new_subtotal(self):
        return max(self.subtotal - self.discount_amount, ZERO)


def price_lines(cart_lines):
    return [PricedLine(line=line, remaining=line.line_total) for line in cart_lines]


def apply_allocations(priced, allocations):
    return [
        PricedLine(line=p.line, remaining=max(p.remaining - allocations.get(p.index, ZERO), ZERO))
        for p in priced
    ]


def round_money(amount):
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _lower_set(values):
    return {str(v).strip().lower() for v in (values or []) if str(v).strip()}


def _category_match(line, categories, eligible_categories):
    if not eligible_categories:
        return False
    return bool(categories.get(line.key, set()) & eligible_categories)


def matching_lines(coupon, lines, categories):
    """
    Lines a coupon's item restrictions select.

    percent_specific and restricted fixed coupons match on ``eligible_products``
    or ``eligible_categories``. bogo matches on ``bogo_eligible_skus`` or
    ``eligible_categories`` and falls back to every line when both are empty.
    Unrestricted percent_all / fixed coupons match every line.
    """
    eligible_categories = _lower_set(coupon.eligible_categories)

    if coupon.discount_type == DiscountType.BOGO:
        skus = _lower_set(coupon.bogo_eligible_skus)
        if not skus and not eligible_categories:
            return list(lines)
    elif coupon.discount_type == DiscountType.PERCENT_SPECIFIC or coupon.has_item_restrictions:
        skus = _lower_set(coupon.eligible_products)
    else:
        return list(lines)

    return [
        line for line in lines
        if line.key in skus or _category_match(line, categories, eligible_categories)
    ]


def allocate(total, weights, caps):
    """
    Split ``total`` (whole cents) over line indexes pro-rata to ``weights``.

    Each share is floored to a cent, then the leftover cents go to the largest
    remainders (earliest line wins ties). No share exceeds its cap.
    """
    weight_sum = sum(weights.values(), ZERO)
    if total <= 0 or weight_sum <= 0:
        return {}

    shares = {}
    remainders = []
    for position, (index, weight) in enumerate(weights.items()):
        exact = total * weight / weight_sum
        share = min(exact.quantize(CENT, rounding=ROUND_FLOOR), caps[index])
        shares[index] = share
        remainders.append((-(exact - share), position, index))

    leftover = total - sum(shares.values(), ZERO)
    for _, _, index in sorted(remainders):
        if leftover <= 0:
            break
        if shares[index] + CENT <= caps[index]:
            shares[index] += CENT
            leftover -= CENT
    return {index: share for index, share in shares.items() if share > 0}


def _result(total, priced, allocations, quantities=None):
    by_index = {p.index: p for p in priced}
    items = []
    for index, amount in sorted(allocations.items()):
        p = by_index[index]
        qty = quantities.get(index, p.quantity) if quantities else p.quantity
        items.append(DiscountedItem(
            sku=p.sku,
            quantity=qty,
            unit_price=p.line.unit_price,
            discount_amount=amount,
        ))
    subtotal = sum((p.remaining for p in priced), ZERO)
    return DiscountResult(discount_amount=total, subtotal=subtotal, items=items, allocations=allocations)


def percent_all_discount(coupon, priced, categories):
    subtotal = sum((p.remaining for p in priced), ZERO)
    rate = (coupon.discount_value or ZERO) / HUNDRED
    total = min(round_money(subtotal * rate), subtotal)
    weights = {p.index: p.remaining for p in priced}
    caps = dict(weights)
    return _result(total, priced, allocate(total, weights, caps))


def percent_specific_discount(coupon, priced, categories):
    matched = matching_lines(coupon, priced, categories)
    rate = (coupon.discount_value or ZERO) / HUNDRED
    exact = sum((p.remaining * rate for p in matched), ZERO)
    matched_total = sum((p.remaining for p in matched), ZERO)
    total = min(round_money(exact), matched_total)
    weights = {p.index: p.remaining for p in matched}
    return _result(total, priced, allocate(total, weights, dict(weights)))


def fixed_discount(coupon, priced, categories):
    # Restricted coupons only spend against the matching lines.
    matched = matching_lines(coupon, priced, categories)
    base = sum((p.remaining for p in matched), ZERO)
    total = min(round_money(coupon.discount_value or ZERO), base)
    weights = {p.index: p.remaining for p in matched}
    return _result(total, priced, allocate(total, weights, dict(weights)))


def bogo_discount(coupon, priced, categories):
    buy = max(coupon.bogo_buy_quantity or 1, 1)
    get = max(coupon.bogo_get_quantity or 1, 1)
    matched = matching_lines(coupon, priced, categories)

    available = sum(p.quantity for p in matched)
    to_free = (available // (buy + get)) * get

    # Cheapest units go free first; equal prices keep cart order.
    cheapest_first = sorted(enumerate(matched), key=lambda pair: (pair[1].unit_price, pair[0]))

    free_qty = {}
    exact = {}
    for _, p in cheapest_first:
        if to_free <= 0:
            break
        take = min(p.quantity, to_free)
        free_qty[p.index] = take
        exact[p.index] = p.unit_price * take
        to_free -= take

    total = round_money(sum(exact.values(), ZERO))
    caps = {p.index: p.remaining for p in matched}
    total = min(total, sum((caps[i] for i in exact), ZERO))
    return _result(total, priced, allocate(total, exact, caps), quantities=free_qty)


def compute_discount(coupon, priced, categories=None):
    """Dispatch on the coupon's discount type."""
    categories = categories or {}
    match coupon.discount_type:
        case DiscountType.PERCENT_ALL:
            return percent_all_discount(coupon, priced, categories)
        case DiscountType.PERCENT_SPECIFIC:
            return percent_specific_discount(coupon, priced, categories)
        case DiscountType.FIXED:
            return fixed_discount(coupon, priced, categories)
        case DiscountType.BOGO:
            return bogo_discount(coupon, priced, categories)
    raise ValueError(f"Unknown discount type: {coupon.discount_type!r}")
