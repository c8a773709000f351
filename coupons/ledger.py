# coupons/ledger.py
"""
Global and per-user redemption counters.

The read path serves previews and never writes. The write path is a pair of
guarded ``UPDATE ... SET usage_count = usage_count + 1 WHERE usage_count <
limit`` statements, so two checkouts racing for the last redemption cannot
both win. It must run inside the caller's ``transaction.atomic()`` block
together with the order row.
"""
import logging

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .messages import Reason, reason_messages
from .models import Coupon, CouponRedemption, CouponUserUsage

logger = logging.getLogger(__name__)


class RedemptionRejected(Exception):
    """A completion lost a limit race; the cart must be revalidated."""

    def __init__(self, reason, code=''):
        self.reason = Reason(reason)
        self.code = code
        self.messages = reason_messages(reason, code=code)
        super().__init__(f"{code}: {self.reason.value}")


def user_usage_count(coupon, user_identifier):
    if not user_identifier:
        return 0
    row = (
        CouponUserUsage.objects
        .filter(coupon_id=coupon.pk, user_identifier=user_identifier)
        .values_list('usage_count', flat=True)
        .first()
    )
    return row or 0


def usage_snapshot(coupon, user_identifier=None):
    """Return ``(usage_count, user_usage_count)`` as currently stored."""
    if coupon.pk is None:
        return coupon.usage_count, 0
    usage_count = (
        Coupon.objects.filter(pk=coupon.pk).values_list('usage_count', flat=True).first()
    )
    if usage_count is None:
        usage_count = coupon.usage_count
    return usage_count, user_usage_count(coupon, user_identifier)


def _increment_global(coupon):
    rows = Coupon.objects.filter(pk=coupon.pk)
    if coupon.usage_limit is not None:
        rows = rows.filter(usage_count__lt=F('usage_limit'))
    return rows.update(usage_count=F('usage_count') + 1, updated_at=timezone.now())


def _increment_user(coupon, user_identifier):
    usage, _ = CouponUserUsage.objects.get_or_create(coupon=coupon, user_identifier=user_identifier)
    rows = CouponUserUsage.objects.filter(pk=usage.pk)
    if coupon.usage_limit_per_user is not None:
        rows = rows.filter(usage_count__lt=coupon.usage_limit_per_user)
    return rows.update(usage_count=F('usage_count') + 1, updated_at=timezone.now())


def increment_usage(coupon, order_reference, discount_amount, user_identifier=None):
    """
    Count one redemption of ``coupon`` for ``order_reference``.

    Raises ``RedemptionRejected`` when the global or per-user limit was
    exhausted by a concurrent completion, or when this order already redeemed
    the coupon. Nothing persists unless the enclosing transaction commits.
    """
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("increment_usage must run inside transaction.atomic()")

    if not _increment_global(coupon):
        logger.warning("Usage limit reached for %s while completing %s", coupon.code, order_reference)
        raise RedemptionRejected(Reason.USAGE_LIMIT_REACHED, coupon.code)

    if user_identifier and not _increment_user(coupon, user_identifier):
        logger.warning(
            "Per-user limit reached for %s / %s while completing %s",
            coupon.code, user_identifier, order_reference,
        )
        raise RedemptionRejected(Reason.USER_LIMIT_REACHED, coupon.code)

    try:
        with transaction.atomic():
            redemption = CouponRedemption.objects.create(
                coupon=coupon,
                code=coupon.code,
                user_identifier=user_identifier or None,
                order_reference=order_reference,
                discount_amount=discount_amount,
            )
    except IntegrityError:
        raise RedemptionRejected(Reason.ALREADY_REDEEMED, coupon.code)

    logger.info(
        "Coupon %s redeemed on %s (discount %s, user %s)",
        coupon.code, order_reference, discount_amount, user_identifier or 'guest',
    )
    return redemption
