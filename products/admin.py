from django import forms
from django.contrib import admin
from .models import Product


class ProductModelForm(forms.ModelForm):
    class Meta:
        model = Product
        fields = '__all__'

    def clean(self):
        cleaned_data = super().clean()
        base_price = cleaned_data.get('base_price')
        sale_price = cleaned_data.get('sale_price')

        if base_price is not None and sale_price is not None and sale_price >= base_price:
            raise forms.ValidationError({
                'sale_price': "Sale price must be less than base price."
            })
        return cleaned_data


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    form = ProductModelForm
    list_display = ['sku', 'name', 'category', 'base_price', 'sale_price', 'is_listed']
    list_filter = ['is_listed', 'category']
    search_fields = ['sku', 'name']
    list_select_related = ['category']
    readonly_fields = ['created_at', 'updated_at']
