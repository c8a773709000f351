# orders/services.py
"""
Checkout: turn a cart plus its applied coupons into an order.

The order rows and every coupon redemption are written in one
``transaction.atomic()`` block. If any coupon lost its last redemption to a
concurrent checkout, ``RedemptionRejected`` propagates, the order is rolled
back together with the increments already made, and the shopper has to
revalidate the cart.
"""
import logging
import uuid

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from coupons.cart import ZERO, CartError, cart_subtotal, parse_cart_items
from coupons.services import record_redemption
from coupons.stacking import apply_stack, check_stacking, revalidate_applied
from coupons.validation import load_categories

from .models import Order, OrderItem

logger = logging.getLogger(__name__)


class CouponsChanged(Exception):
    """Applied coupons no longer hold for this cart; nothing was written."""

    def __init__(self, warnings):
        self.warnings = warnings
        codes = ', '.join(w['code'] for w in warnings)
        super().__init__(f"Coupons no longer valid: {codes}")


def _order_number():
    return timezone.now().strftime('%y%m%d%H%M') + '-' + uuid.uuid4().hex[:6].upper()


def place_order(cart_items, coupon_codes=(), user_identifier=None, currency=None, now=None):
    """
    Create an order for ``cart_items`` with ``coupon_codes`` applied.

    Raises ``CartError`` for a malformed or empty cart, ``CouponsChanged`` when
    a coupon fails revalidation and ``RedemptionRejected`` when a limit was
    exhausted between revalidation and the redemption write.
    """
    now = now or timezone.now()
    user_identifier = user_identifier or None
    currency = (currency or getattr(settings, 'COUPON_DEFAULT_CURRENCY', 'ILS')).upper()

    lines = parse_cart_items(cart_items)
    if not lines:
        raise CartError('cart is empty')

    categories = load_categories(lines)
    coupons, warnings = revalidate_applied(coupon_codes, lines, now, user_identifier, categories, currency)
    if warnings:
        raise CouponsChanged(warnings)
    for coupon in coupons:
        verdict = check_stacking(coupon, coupons)
        if not verdict.ok:
            raise CouponsChanged([{
                'code': coupon.code,
                'reasonCode': verdict.reason.value,
                'messages': verdict.messages,
            }])

    stack = apply_stack(coupons, lines, categories)
    line_discounts = stack.discounted_items()

    with transaction.atomic():
        order = Order.objects.create(
            order_number=_order_number(),
            user_identifier=user_identifier,
            currency=currency,
            subtotal=cart_subtotal(lines),
            discount_amount=stack.discount_amount,
            total_amount=stack.new_subtotal,
            coupon_codes=[c.code for c in stack.coupons],
            created_at=now,
        )
        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                sku=line.sku,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
                discount_amount=line_discounts.get(line.index, ZERO),
            )
            for line in lines
        ])

        for entry in stack.entries:
            record_redemption(
                entry.coupon.code,
                order.order_number,
                user_identifier=user_identifier,
                discount_amount=entry.result.discount_amount,
            )

    logger.info(
        "Order %s placed: subtotal %s, discount %s, coupons %s",
        order.order_number, order.subtotal, order.discount_amount, order.coupon_codes or '-',
    )
    return order
