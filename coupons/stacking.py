# coupons/stacking.py
"""
Which coupons may sit on a cart together, and in what order they apply.

Stacked coupons are applied one after another, each against what the
previous ones left of every line, so the combined discount can never push the
subtotal below zero.
"""
import logging
from dataclasses import dataclass, field

from django.conf import settings

from .calculator import DiscountedItem, apply_allocations, compute_discount, price_lines
from .cart import ZERO, cart_subtotal
from .eligibility import Eligibility, evaluate
from .messages import Reason, dropped_coupon_messages
from .models import Coupon, DiscountType, normalize_code

logger = logging.getLogger(__name__)

TYPE_RANK = {
    DiscountType.PERCENT_ALL: 0,
    DiscountType.PERCENT_SPECIFIC: 0,
    DiscountType.FIXED: 1,
    DiscountType.BOGO: 2,
}

ORDER_BY_CREATED = 'created'
ORDER_BY_TYPE = 'type'


@dataclass
class StackEntry:
    coupon: Coupon
    result: object


@dataclass
class StackResult:
    subtotal: object
    entries: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    @property
    def discount_amount(self):
        return sum((entry.result.discount_amount for entry in self.entries), ZERO)

    @property
    def new_subtotal(self):
        return max(self.subtotal - self.discount_amount, ZERO)

    @property
    def coupons(self):
        return [entry.coupon for entry in self.entries]

    def entry_for(self, coupon):
        for entry in self.entries:
            if entry.coupon.pk == coupon.pk:
                return entry
        return None

    def discounted_items(self):
        """Per-line totals across every coupon in the stack, cart order."""
        merged = {}
        for entry in self.entries:
            for index, amount in entry.result.allocations.items():
                merged[index] = merged.get(index, ZERO) + amount
        return merged


def dropped_warning(code, reason):
    return {
        'code': code,
        'reasonCode': Reason(reason).value,
        'messages': dropped_coupon_messages(code, reason),
    }


def stacking_order():
    mode = getattr(settings, 'COUPON_STACKING_ORDER', ORDER_BY_CREATED)
    if mode not in (ORDER_BY_CREATED, ORDER_BY_TYPE):
        raise ValueError(f"COUPON_STACKING_ORDER must be 'created' or 'type', got {mode!r}")
    return mode


def stack_key(coupon, mode):
    rank = TYPE_RANK.get(coupon.discount_type, len(TYPE_RANK))
    if mode == ORDER_BY_TYPE:
        return (rank, coupon.created_at, coupon.code)
    return (coupon.created_at, rank, coupon.code)


def order_coupons(coupons, mode=None):
    """Application order; never the order the codes arrived in."""
    mode = mode or stacking_order()
    return sorted(coupons, key=lambda coupon: stack_key(coupon, mode))


def can_stack(coupon, applied):
    others = [c for c in applied if c.pk != coupon.pk]
    if not others:
        return True
    return coupon.stackable and all(c.stackable for c in others)


def check_stacking(coupon, applied):
    if can_stack(coupon, applied):
        return Eligibility()
    codes = ', '.join(c.code for c in applied if c.pk != coupon.pk)
    return Eligibility.rejected(Reason.NOT_STACKABLE, code=coupon.code, applied=codes)


def apply_stack(coupons, lines, categories=None, mode=None):
    """Compute every coupon in order against the remaining line totals."""
    priced = price_lines(lines)
    stack = StackResult(subtotal=cart_subtotal(lines))
    for coupon in order_coupons(coupons, mode):
        result = compute_discount(coupon, priced, categories)
        priced = apply_allocations(priced, result.allocations)
        stack.entries.append(StackEntry(coupon=coupon, result=result))
    return stack


def revalidate_applied(codes, lines, now, user_identifier=None, categories=None, currency=None):
    """
    Re-check coupons already on the cart instead of trusting earlier state.

    Returns ``(coupons, warnings)``; codes that vanished or no longer pass
    eligibility are dropped with a warning.
    """
    coupons = []
    warnings = []
    seen = set()
    for raw in codes:
        code = normalize_code(raw)
        if not code or code in seen:
            continue
        seen.add(code)
        try:
            coupon = Coupon.objects.by_code(code)
        except Coupon.DoesNotExist:
            warnings.append(dropped_warning(code, Reason.NOT_FOUND))
            continue

        verdict = evaluate(coupon, lines, now, user_identifier, categories=categories, currency=currency)
        if not verdict.ok:
            logger.debug("Dropping applied coupon %s: %s", code, verdict.reason)
            warnings.append(dropped_warning(code, verdict.reason))
            continue
        coupons.append(coupon)
    return coupons, warnings


def _keep_compatible(coupons, mode):
    kept = []
    dropped = []
    for coupon in order_coupons(coupons, mode):
        if can_stack(coupon, kept):
            kept.append(coupon)
        else:
            dropped.append(coupon)
    return kept, dropped


@dataclass
class RefreshResult:
    coupons: list
    added: list
    removed: list
    warnings: list


def refresh_applied_coupons(lines, applied_codes, now, user_identifier=None, categories=None,
                            currency=None, mode=None):
    """
    Re-evaluate the applied set after a cart change.

    Manual codes that still pass are kept. Auto-apply coupons that stopped
    qualifying disappear silently, and newly qualifying ones are added when the
    stacking rule allows, biggest standalone discount first.
    """
    mode = mode or stacking_order()
    requested = []
    for code in applied_codes:
        code = normalize_code(code)
        if code and code not in requested:
            requested.append(code)

    valid, warnings = revalidate_applied(requested, lines, now, user_identifier, categories, currency)
    auto_codes = set(
        Coupon.objects.filter(code__in=requested, auto_apply=True).values_list('code', flat=True)
    )
    warnings = [w for w in warnings if w['code'] not in auto_codes]

    kept, incompatible = _keep_compatible(valid, mode)
    for coupon in incompatible:
        if coupon.code not in auto_codes:
            warnings.append(dropped_warning(coupon.code, Reason.NOT_STACKABLE))

    candidates = []
    kept_codes = {c.code for c in kept}
    for coupon in Coupon.objects.auto_apply().exclude(code__in=kept_codes):
        verdict = evaluate(coupon, lines, now, user_identifier, categories=categories, currency=currency)
        if not verdict.ok:
            continue
        standalone = compute_discount(coupon, price_lines(lines), categories)
        if standalone.discount_amount > 0:
            candidates.append((standalone.discount_amount, coupon))

    candidates.sort(key=lambda pair: (-pair[0], pair[1].created_at, pair[1].code))
    for _, coupon in candidates:
        if can_stack(coupon, kept):
            kept.append(coupon)

    final = order_coupons(kept, mode)
    final_codes = [c.code for c in final]
    return RefreshResult(
        coupons=final,
        added=[code for code in final_codes if code not in requested],
        removed=[code for code in requested if code not in final_codes],
        warnings=warnings,
    )


def combined_items(stack, lines):
    """``DiscountedItem`` rows for the whole stack, one per discounted line."""
    merged = stack.discounted_items()
    by_index = {line.index: line for line in lines}
    return [
        DiscountedItem(
            sku=by_index[index].sku,
            quantity=by_index[index].quantity,
            unit_price=by_index[index].unit_price,
            discount_amount=amount,
        )
        for index, amount in sorted(merged.items())
        if amount > 0
    ]
