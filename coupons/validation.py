# coupons/validation.py
"""
Public entry points of the coupon engine.

``validate`` previews a coupon against a cart. It only reads, so the storefront
can call it on every cart change and the back office uses it as the "test
coupon" tool. Redemption counters move only through ``services.record_redemption``.
"""
import logging
from dataclasses import dataclass, field

from django.conf import settings
from django.utils import timezone

from products.utils import category_tokens_by_sku

from .calculator import compute_discount, price_lines
from .cart import CartError, cart_subtotal, parse_cart_items
from .eligibility import evaluate
from .messages import Reason, discount_label, pick_locale, reason_messages, success_messages
from .models import Coupon, normalize_code
from .stacking import (
    apply_stack, check_stacking, combined_items, order_coupons, refresh_applied_coupons,
    revalidate_applied,
)

logger = logging.getLogger(__name__)


def money(amount):
    return float(amount)


def _items_payload(items):
    return [
        {
            'sku': item.sku,
            'quantity': item.quantity,
            'unitPrice': money(item.unit_price),
            'discountAmount': money(item.discount_amount),
        }
        for item in items
    ]


@dataclass
class CouponFailure:
    reason: Reason
    messages: dict
    locale: str = 'en'
    details: dict = None

    success = False

    def to_dict(self):
        payload = {
            'success': False,
            'reasonCode': self.reason.value,
            'messages': self.messages,
            'message': self.messages.get(self.locale, ''),
        }
        if self.details:
            payload['details'] = self.details
        return payload


@dataclass
class CouponSuccess:
    coupon: Coupon
    stack: object
    lines: list
    currency: str
    locale: str = 'en'
    warnings: list = field(default_factory=list)

    success = True

    @property
    def discount_amount(self):
        return self.stack.discount_amount

    @property
    def new_subtotal(self):
        return self.stack.new_subtotal

    @property
    def coupon_discount(self):
        return self.stack.entry_for(self.coupon).result.discount_amount

    def to_dict(self):
        coupon = self.coupon
        messages = success_messages()
        applied = []
        for entry in self.stack.entries:
            applied.append({
                'code': entry.coupon.code,
                'discountType': entry.coupon.discount_type,
                'discountAmount': money(entry.result.discount_amount),
                'subtotalBefore': money(entry.result.subtotal),
                'subtotalAfter': money(entry.result.new_subtotal),
                'discountLabel': discount_label(entry.coupon, self.currency),
                'discountedItems': _items_payload(entry.result.items),
            })
        return {
            'success': True,
            'currency': self.currency,
            'coupon': {
                'id': coupon.pk,
                'code': coupon.code,
                'name': {'en': coupon.name_en, 'he': coupon.name_he},
                'description': {'en': coupon.description_en, 'he': coupon.description_he},
                'discountType': coupon.discount_type,
                'discountValue': money(coupon.discount_value) if coupon.discount_value is not None else None,
                'discountAmount': money(self.coupon_discount),
                'discountLabel': discount_label(coupon, self.currency),
                'stackable': coupon.stackable,
                'autoApply': coupon.auto_apply,
                'minCartValue': money(coupon.min_cart_value) if coupon.min_cart_value is not None else None,
            },
            'subtotal': money(self.stack.subtotal),
            'discountAmount': money(self.discount_amount),
            'newSubtotal': money(self.new_subtotal),
            'discountedItems': _items_payload(combined_items(self.stack, self.lines)),
            'appliedCoupons': applied,
            'messages': messages,
            'message': messages[self.locale],
            'warnings': self.warnings,
        }


def _failure(reason, locale, details=None, **params):
    return CouponFailure(reason=Reason(reason), messages=reason_messages(reason, **params),
                         locale=locale, details=details)


def _currency(currency):
    return (currency or getattr(settings, 'COUPON_DEFAULT_CURRENCY', 'ILS')).upper()


def load_categories(lines):
    # Live lookup: category membership is read at validation time.
    return category_tokens_by_sku([line.sku for line in lines])


def validate(code, cart_items, currency=None, locale=None, user_identifier=None,
             existing_coupon_codes=(), now=None):
    """
    Preview ``code`` on a cart that may already carry ``existing_coupon_codes``.

    Returns ``CouponSuccess`` or ``CouponFailure``; never raises for bad
    shopper input and never writes to the database.
    """
    locale = pick_locale(locale)
    currency = _currency(currency)
    now = now or timezone.now()
    user_identifier = user_identifier or None

    try:
        lines = parse_cart_items(cart_items)
    except CartError as exc:
        return _failure(Reason.INVALID_CART, locale, details={'cartItems': str(exc)}, detail=str(exc))

    normalized = normalize_code(code)
    try:
        coupon = Coupon.objects.by_code(normalized)
    except Coupon.DoesNotExist:
        logger.debug("Coupon lookup miss for %r", normalized)
        return _failure(Reason.NOT_FOUND, locale)

    categories = load_categories(lines)
    existing = [c for c in existing_coupon_codes or () if normalize_code(c) != coupon.code]
    applied, warnings = revalidate_applied(existing, lines, now, user_identifier, categories, currency)

    verdict = evaluate(
        coupon, lines, now, user_identifier,
        applied_codes=[c.code for c in applied], categories=categories, currency=currency,
    )
    if not verdict.ok:
        return CouponFailure(reason=verdict.reason, messages=verdict.messages, locale=locale)

    verdict = check_stacking(coupon, applied)
    if not verdict.ok:
        return CouponFailure(reason=verdict.reason, messages=verdict.messages, locale=locale)

    stack = apply_stack(applied + [coupon], lines, categories)
    if stack.entry_for(coupon).result.discount_amount <= 0:
        return _failure(Reason.NOT_ELIGIBLE, locale)

    return CouponSuccess(coupon=coupon, stack=stack, lines=lines, currency=currency,
                         locale=locale, warnings=warnings)


def list_auto_apply_candidates(cart_items, user_identifier=None, now=None, currency=None):
    """
    Active auto-apply coupons that would discount this cart without a code.

    Raises ``CartError`` for a malformed cart.
    """
    lines = parse_cart_items(cart_items)
    now = now or timezone.now()
    categories = load_categories(lines)
    candidates = []
    for coupon in Coupon.objects.auto_apply().order_by('created_at', 'id'):
        verdict = evaluate(coupon, lines, now, user_identifier or None,
                           categories=categories, currency=_currency(currency))
        if not verdict.ok:
            continue
        if compute_discount(coupon, price_lines(lines), categories).discount_amount > 0:
            candidates.append(coupon)
    return candidates


def evaluate_auto_apply(cart_items, currency=None, locale=None, user_identifier=None, now=None):
    """Best single auto-apply coupon for the cart, by discount."""
    locale = pick_locale(locale)
    now = now or timezone.now()
    try:
        candidates = list_auto_apply_candidates(cart_items, user_identifier, now, currency)
    except CartError as exc:
        return _failure(Reason.INVALID_CART, locale, details={'cartItems': str(exc)}, detail=str(exc))

    best = None
    for coupon in candidates:
        result = validate(coupon.code, cart_items, currency, locale, user_identifier, now=now)
        if result.success and (best is None or result.discount_amount > best.discount_amount):
            best = result
    if best is None:
        return _failure(Reason.NO_AUTO_COUPON, locale)
    return best


def refresh_cart_coupons(cart_items, applied_codes=(), currency=None, locale=None,
                         user_identifier=None, now=None):
    """
    Re-evaluate the cart's coupon set after it changed.

    Returns a payload dict with the new applied codes, what was silently
    added/removed, warnings for manual codes that were dropped and the totals
    for the resulting stack. Raises ``CartError`` for a malformed cart.
    """
    locale = pick_locale(locale)
    currency = _currency(currency)
    now = now or timezone.now()
    lines = parse_cart_items(cart_items)
    categories = load_categories(lines)

    refreshed = refresh_applied_coupons(lines, applied_codes, now, user_identifier or None,
                                        categories, currency)
    stack = apply_stack(refreshed.coupons, lines, categories)
    return {
        'success': True,
        'currency': currency,
        'appliedCouponCodes': [c.code for c in order_coupons(refreshed.coupons)],
        'added': refreshed.added,
        'removed': refreshed.removed,
        'warnings': refreshed.warnings,
        'subtotal': money(cart_subtotal(lines)),
        'discountAmount': money(stack.discount_amount),
        'newSubtotal': money(stack.new_subtotal),
        'discountedItems': _items_payload(combined_items(stack, lines)),
        'appliedCoupons': [
            {
                'code': entry.coupon.code,
                'discountAmount': money(entry.result.discount_amount),
                'discountLabel': discount_label(entry.coupon, currency),
            }
            for entry in stack.entries
        ],
        'locale': locale,
    }
