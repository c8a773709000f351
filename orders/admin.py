from django.contrib import admin

from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['sku', 'quantity', 'unit_price', 'line_total', 'discount_amount']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'user_identifier', 'subtotal', 'discount_amount', 'total_amount', 'status', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['order_number', 'user_identifier']
    readonly_fields = ['order_number', 'subtotal', 'discount_amount', 'total_amount', 'coupon_codes', 'created_at']
    inlines = [OrderItemInline]
