from django.contrib import admin

from .forms import CouponForm
from .models import Coupon, CouponRedemption, CouponUserUsage


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    form = CouponForm
    list_display = ['code', 'name_en', 'discount_type', 'discount_value', 'min_cart_value',
                    'end_date', 'stackable', 'auto_apply', 'is_active', 'usage_count', 'usage_limit']
    list_filter = ['is_active', 'discount_type', 'auto_apply', 'stackable', 'end_date']
    search_fields = ['code', 'name_en', 'name_he']
    readonly_fields = ['usage_count', 'created_at', 'updated_at']

    fieldsets = (
        ('Basic Info', {
            'fields': ('code', 'name_en', 'name_he', 'description_en', 'description_he')
        }),
        ('Discount', {
            'fields': ('discount_type', 'discount_value', 'eligible_products', 'eligible_categories')
        }),
        ('Buy X Get Y', {
            'fields': ('bogo_buy_quantity', 'bogo_get_quantity', 'bogo_eligible_skus'),
            'classes': ('collapse',)
        }),
        ('Conditions', {
            'fields': ('min_cart_value', 'start_date', 'end_date', 'stackable', 'auto_apply')
        }),
        ('Usage', {
            'fields': ('usage_limit', 'usage_limit_per_user', 'usage_count', 'is_active')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    actions = ['deactivate_coupons']

    def deactivate_coupons(self, request, queryset):
        updated = queryset.delete()
        self.message_user(request, f'{updated} coupon(s) deactivated.')
    deactivate_coupons.short_description = "Deactivate selected coupons"

    def get_actions(self, request):
        actions = super().get_actions(request)
        actions.pop('delete_selected', None)
        return actions

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(CouponUserUsage)
class CouponUserUsageAdmin(admin.ModelAdmin):
    list_display = ['coupon', 'user_identifier', 'usage_count', 'updated_at']
    search_fields = ['coupon__code', 'user_identifier']
    readonly_fields = ['coupon', 'user_identifier', 'usage_count', 'updated_at']

    def has_add_permission(self, request):
        return False


@admin.register(CouponRedemption)
class CouponRedemptionAdmin(admin.ModelAdmin):
    list_display = ['code', 'order_reference', 'user_identifier', 'discount_amount', 'redeemed_at']
    list_filter = ['redeemed_at']
    search_fields = ['code', 'order_reference', 'user_identifier']
    readonly_fields = ['coupon', 'code', 'order_reference', 'user_identifier', 'discount_amount', 'redeemed_at']

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
