# coupons/models.py
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


def normalize_code(code):
    """Coupon codes are case-insensitive; they are stored trimmed and upper-cased."""
    return (code or '').strip().upper()


class DiscountType(models.TextChoices):
    PERCENT_ALL = 'percent_all', 'Percent off entire cart'
    PERCENT_SPECIFIC = 'percent_specific', 'Percent off specific items'
    FIXED = 'fixed', 'Fixed amount'
    BOGO = 'bogo', 'Buy X Get Y'


PERCENT_TYPES = (DiscountType.PERCENT_ALL, DiscountType.PERCENT_SPECIFIC)


class CouponQuerySet(models.QuerySet):
    def by_code(self, code):
        return self.get(code=normalize_code(code))

    def active(self):
        return self.filter(is_active=True)

    def auto_apply(self):
        return self.active().filter(auto_apply=True)

    def delete(self):
        # Historical orders reference coupons: deactivate instead of deleting.
        return self.update(is_active=False, updated_at=timezone.now())


class Coupon(models.Model):
    code = models.CharField(max_length=64, unique=True)
    name_en = models.CharField(max_length=150)
    name_he = models.CharField(max_length=150)
    description_en = models.TextField(blank=True, null=True)
    description_he = models.TextField(blank=True, null=True)

    discount_type = models.CharField(max_length=20, choices=DiscountType.choices)
    discount_value = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True,
        help_text="Percent for percentage coupons, currency amount for fixed coupons",
    )

    # Conditions
    min_cart_value = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True, help_text="Minimum cart subtotal"
    )
    start_date = models.DateTimeField(null=True, blank=True, help_text="Empty = no start bound")
    end_date = models.DateTimeField(null=True, blank=True, help_text="Empty = never expires")

    # Usage limits
    usage_limit = models.PositiveIntegerField(null=True, blank=True, help_text="Total usage limit (all users)")
    usage_limit_per_user = models.PositiveIntegerField(null=True, blank=True, help_text="How many times each user can use")
    usage_count = models.PositiveIntegerField(default=0, help_text="Number of times redeemed globally")

    stackable = models.BooleanField(default=False)
    auto_apply = models.BooleanField(default=False)

    # Item restrictions
    eligible_products = models.JSONField(default=list, blank=True, help_text="SKUs")
    eligible_categories = models.JSONField(default=list, blank=True, help_text="Category ids or slugs")
    bogo_buy_quantity = models.PositiveIntegerField(null=True, blank=True)
    bogo_get_quantity = models.PositiveIntegerField(null=True, blank=True)
    bogo_eligible_skus = models.JSONField(default=list, blank=True)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CouponQuerySet.as_manager()

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['is_active', 'auto_apply'], name='coupon_active_auto_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(usage_limit__isnull=True) | Q(usage_count__lte=F('usage_limit')),
                name='coupon_usage_within_limit',
            ),
        ]

    def __str__(self):
        return f"{self.code} ({self.get_discount_type_display()})"

    def save(self, *args, **kwargs):
        self.code = normalize_code(self.code)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """Coupons are only ever deactivated, never removed."""
        self.deactivate()
        return 0, {}

    def deactivate(self):
        if self.is_active:
            self.is_active = False
            self.save(update_fields=['is_active', 'updated_at'])

    @property
    def is_percent(self):
        return self.discount_type in PERCENT_TYPES

    @property
    def has_item_restrictions(self):
        return bool(self.eligible_products or self.eligible_categories)

    def has_redemptions(self):
        return self.pk is not None and self.redemptions.exists()


class CouponUserUsage(models.Model):
    """Per-user redemption counter, bumped only at order completion."""
    coupon = models.ForeignKey(Coupon, on_delete=models.PROTECT, related_name='user_usages')
    user_identifier = models.CharField(max_length=191, db_index=True)
    usage_count = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['coupon', 'user_identifier'], name='unique_coupon_user_usage'),
        ]

    def __str__(self):
        return f"{self.user_identifier} used {self.coupon.code} x{self.usage_count}"


class CouponRedemption(models.Model):
    """Append-only record, one per coupon per completed order."""
    coupon = models.ForeignKey(Coupon, on_delete=models.PROTECT, related_name='redemptions')
    code = models.CharField(max_length=64)
    user_identifier = models.CharField(max_length=191, blank=True, null=True)
    order_reference = models.CharField(max_length=64, db_index=True)
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2)
    redeemed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-redeemed_at']
        constraints = [
            models.UniqueConstraint(fields=['coupon', 'order_reference'], name='unique_coupon_order_redemption'),
        ]
        indexes = [
            models.Index(fields=['coupon', 'user_identifier'], name='redemption_coupon_user_idx'),
        ]

    def __str__(self):
        who = self.user_identifier or 'guest'
        return f"{who} redeemed {self.code} on {self.order_reference}"
