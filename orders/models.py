# orders/models.py

from django.db import models
from django.utils import timezone


class Order(models.Model):
    ST_CHOICES = [
        ('PLACED', 'Placed'),
        ('CANCELLED', 'Cancelled'),
    ]

    order_number = models.CharField(max_length=24, unique=True)
    user_identifier = models.CharField(max_length=191, blank=True, null=True, db_index=True)
    currency = models.CharField(max_length=3, default='ILS')
    status = models.CharField(max_length=25, choices=ST_CHOICES, default='PLACED')

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    # Snapshot of the codes redeemed, in application order
    coupon_codes = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.order_number} - {self.user_identifier or "guest"}'


class OrderItem(models.Model):
    order = models.ForeignKey("Order", on_delete=models.CASCADE, related_name="items")

    # Snapshot of the cart line at checkout
    sku = models.CharField(max_length=64)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    line_total = models.DecimalField(max_digits=12, decimal_places=2)
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f'{self.sku} x{self.quantity}'

    @property
    def net_total(self):
        return self.line_total - self.discount_amount
