# coupons/services.py

import logging
from decimal import Decimal

from django.db import transaction

from .ledger import RedemptionRejected, increment_usage
from .messages import Reason
from .models import Coupon, normalize_code

logger = logging.getLogger(__name__)


def record_redemption(code, order_reference, user_identifier=None, discount_amount=Decimal('0.00')):
    """
    Count a coupon as used by a completed order.

    Must be called exactly once per coupon per order, AFTER the order is
    confirmed, and inside the same ``transaction.atomic()`` block that writes
    the order so a failed order leaves no increment behind. When called
    outside a transaction it opens its own.

    Raises ``RedemptionRejected`` (``UsageLimitReached``,
    ``UserLimitReached``, ``AlreadyRedeemed`` or ``NotFound``); the caller
    must revalidate the cart without that coupon.
    """
    normalized = normalize_code(code)
    with transaction.atomic():
        try:
            coupon = Coupon.objects.by_code(normalized)
        except Coupon.DoesNotExist:
            raise RedemptionRejected(Reason.NOT_FOUND, normalized)

        return increment_usage(
            coupon,
            order_reference=str(order_reference),
            discount_amount=Decimal(str(discount_amount)),
            user_identifier=user_identifier or None,
        )


def deactivate_expired(coupons, now):
    """Flip ``is_active`` off for active coupons whose end date has passed."""
    expired = [c.pk for c in coupons if c.is_active and c.end_date and c.end_date < now]
    if expired:
        Coupon.objects.filter(pk__in=expired).update(is_active=False)
        logger.info("Deactivated %d expired coupon(s)", len(expired))
        for coupon in coupons:
            if coupon.pk in expired:
                coupon.is_active = False
    return expired
