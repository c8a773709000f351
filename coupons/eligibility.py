# coupons/eligibility.py
"""Decides whether one coupon may apply to a cart right now."""
import logging
from dataclasses import dataclass, field

from .calculator import matching_lines
from .cart import cart_subtotal
from .ledger import usage_snapshot
from .messages import Reason, empty_cart_messages, format_money, reason_messages
from .models import DiscountType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Eligibility:
    reason: Reason = None
    messages: dict = field(default_factory=dict)

    @property
    def ok(self):
        return self.reason is None

    @classmethod
    def rejected(cls, reason, **params):
        return cls(reason=Reason(reason), messages=reason_messages(reason, **params))


ELIGIBLE = Eligibility()


def check_window(coupon, now):
    if coupon.start_date and now < coupon.start_date:
        return Eligibility.rejected(Reason.NOT_STARTED)
    if coupon.end_date and now > coupon.end_date:
        return Eligibility.rejected(Reason.EXPIRED)
    return ELIGIBLE


def check_usage(coupon, user_identifier):
    """Read-only limit checks; nothing is reserved here."""
    needs_user = bool(user_identifier) and coupon.usage_limit_per_user is not None
    if coupon.usage_limit is None and not needs_user:
        return ELIGIBLE

    usage_count, user_count = usage_snapshot(coupon, user_identifier if needs_user else None)
    if coupon.usage_limit is not None and usage_count >= coupon.usage_limit:
        return Eligibility.rejected(Reason.USAGE_LIMIT_REACHED)
    if needs_user and user_count >= coupon.usage_limit_per_user:
        return Eligibility.rejected(Reason.USER_LIMIT_REACHED)
    return ELIGIBLE


def check_items(coupon, lines, categories):
    restricted = (
        coupon.discount_type in (DiscountType.PERCENT_SPECIFIC, DiscountType.BOGO)
        or (coupon.discount_type == DiscountType.FIXED and coupon.has_item_restrictions)
    )
    if restricted and not matching_lines(coupon, lines, categories):
        return Eligibility.rejected(Reason.NOT_ELIGIBLE)
    return ELIGIBLE


def evaluate(coupon, lines, now, user_identifier=None, applied_codes=(), categories=None, currency=None):
    """
    Run the eligibility checks in order; the first failure wins.

    ``applied_codes`` are the other coupons already on the cart (the coupon's
    own code is ignored). ``categories`` is the live ``{sku: tokens}`` map.
    """
    if not lines:
        return Eligibility(reason=Reason.NOT_ELIGIBLE, messages=empty_cart_messages())

    if not coupon.is_active:
        return Eligibility.rejected(Reason.INACTIVE)

    result = check_window(coupon, now)
    if not result.ok:
        return result

    if coupon.min_cart_value is not None and cart_subtotal(lines) < coupon.min_cart_value:
        return Eligibility.rejected(
            Reason.BELOW_MIN_CART, min_cart=format_money(coupon.min_cart_value, currency)
        )

    result = check_usage(coupon, user_identifier)
    if not result.ok:
        return result

    result = check_items(coupon, lines, categories or {})
    if not result.ok:
        return result

    others = [code for code in applied_codes if code != coupon.code]
    if others and not coupon.stackable:
        return Eligibility.rejected(Reason.NOT_STACKABLE, code=coupon.code, applied=', '.join(others))

    logger.debug("Coupon %s eligible for cart of %d line(s)", coupon.code, len(lines))
    return ELIGIBLE
