# coupons/forms.py
from decimal import Decimal

from django import forms

from .models import Coupon, DiscountType, PERCENT_TYPES, normalize_code


class CodeListField(forms.Field):
    """Accepts a list of strings or a comma separated string (admin textarea)."""

    def to_python(self, value):
        if value in (None, ''):
            return []
        if isinstance(value, str):
            value = value.split(',')
        if not isinstance(value, (list, tuple)):
            raise forms.ValidationError('Enter a list of values.', code='invalid')
        cleaned = []
        for item in value:
            if not isinstance(item, (str, int)) or isinstance(item, bool):
                raise forms.ValidationError('Each value must be text.', code='invalid')
            item = str(item).strip()
            if item and item not in cleaned:
                cleaned.append(item)
        return cleaned


class CouponForm(forms.ModelForm):
    eligible_products = CodeListField(required=False)
    eligible_categories = CodeListField(required=False)
    bogo_eligible_skus = CodeListField(required=False)

    class Meta:
        model = Coupon
        fields = [
            'code',
            'name_en',
            'name_he',
            'description_en',
            'description_he',
            'discount_type',
            'discount_value',
            'min_cart_value',
            'start_date',
            'end_date',
            'usage_limit',
            'usage_limit_per_user',
            'stackable',
            'auto_apply',
            'eligible_products',
            'eligible_categories',
            'bogo_buy_quantity',
            'bogo_get_quantity',
            'bogo_eligible_skus',
            'is_active',
        ]

        widgets = {
            'start_date': forms.DateTimeInput(attrs={'type': 'datetime-local', 'class': 'form-control'}),
            'end_date': forms.DateTimeInput(attrs={'type': 'datetime-local', 'class': 'form-control'}),
            'code': forms.TextInput(attrs={
                'class': 'form-control',
                'placeholder': 'e.g., SUMMER10',
                'style': 'text-transform: uppercase;'
            }),
            'description_en': forms.Textarea(attrs={'class': 'form-control', 'rows': 3}),
            'description_he': forms.Textarea(attrs={'class': 'form-control', 'rows': 3, 'dir': 'rtl'}),
            'discount_type': forms.Select(attrs={'class': 'form-select'}),
        }

        labels = {
            'code': 'Coupon Code',
            'name_en': 'Name (English)',
            'name_he': 'Name (Hebrew)',
            'discount_type': 'Discount Type',
            'discount_value': 'Discount Value',
            'min_cart_value': 'Minimum Cart Value',
            'usage_limit': 'Total Usage Limit (All Users)',
            'usage_limit_per_user': 'Per-User Usage Limit',
            'bogo_buy_quantity': 'BOGO: Buy Quantity',
            'bogo_get_quantity': 'BOGO: Get Quantity Free',
            'bogo_eligible_skus': 'BOGO Eligible SKUs',
        }

        help_texts = {
            'code': 'Unique coupon code, stored upper-case',
            'discount_value': 'Enter 10 for 10% or 10 for a fixed amount, based on type',
            'usage_limit': 'Leave empty for unlimited redemptions',
            'usage_limit_per_user': 'Leave empty for no per-user limit',
            'eligible_categories': 'Category ids or slugs; sub-categories are included',
        }

    def clean_code(self):
        code = normalize_code(self.cleaned_data.get('code'))
        if not code:
            raise forms.ValidationError('This field is required.', code='required')
        if self.instance.pk and code != self.instance.code and self.instance.has_redemptions():
            raise forms.ValidationError('The code of a redeemed coupon cannot be changed.', code='immutable')
        return code

    def clean(self):
        cleaned_data = super().clean()
        discount_type = cleaned_data.get('discount_type')
        value = cleaned_data.get('discount_value')
        errors = {}

        if discount_type in PERCENT_TYPES or discount_type == DiscountType.FIXED:
            if value is None or value <= 0:
                errors['discount_value'] = 'Discount value is required for percentage and fixed coupons.'
            elif discount_type in PERCENT_TYPES and value > Decimal('100'):
                errors['discount_value'] = 'Percentage must be between 0 and 100.'

        if discount_type == DiscountType.PERCENT_SPECIFIC:
            if not cleaned_data.get('eligible_products') and not cleaned_data.get('eligible_categories'):
                errors['eligible_products'] = 'Choose at least one product or category.'

        if discount_type == DiscountType.BOGO:
            for name in ('bogo_buy_quantity', 'bogo_get_quantity'):
                qty = cleaned_data.get(name)
                if qty is None or qty < 1:
                    errors[name] = 'A positive quantity is required for BOGO coupons.'

        start = cleaned_data.get('start_date')
        end = cleaned_data.get('end_date')
        if start and end and start > end:
            errors['end_date'] = 'End date must be after the start date.'

        min_cart = cleaned_data.get('min_cart_value')
        if min_cart is not None and min_cart < 0:
            errors['min_cart_value'] = 'Minimum cart value cannot be negative.'

        limit = cleaned_data.get('usage_limit')
        per_user = cleaned_data.get('usage_limit_per_user')
        if limit is not None and per_user is not None and per_user > limit:
            errors['usage_limit_per_user'] = 'Per-user limit cannot exceed the total usage limit.'
        if limit is not None and self.instance.pk and limit < self.instance.usage_count:
            errors['usage_limit'] = f'Coupon was already redeemed {self.instance.usage_count} time(s).'

        for name, message in errors.items():
            self.add_error(name, message)
        return cleaned_data
