from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone


@pytest.fixture
def make_coupon(db):
    """Coupon factory; each call is created one minute after the previous one."""
    from coupons.models import Coupon, DiscountType

    base = timezone.now() - timedelta(days=1)
    counter = {'n': 0}

    def factory(code, discount_type=DiscountType.PERCENT_ALL, discount_value='10', **fields):
        counter['n'] += 1
        fields.setdefault('name_en', f'{code} coupon')
        fields.setdefault('name_he', f'קופון {code}')
        fields.setdefault('created_at', base + timedelta(minutes=counter['n']))
        if discount_value is not None:
            discount_value = Decimal(str(discount_value))
        return Coupon.objects.create(
            code=code, discount_type=discount_type, discount_value=discount_value, **fields
        )

    return factory


@pytest.fixture
def catalog(db):
    from category.models import Category
    from products.models import Product

    audio = Category.objects.create(name='Audio')
    headphones = Category.objects.create(name='Headphones', parent=audio)
    cables = Category.objects.create(name='Cables')
    products = {
        'SKU-1001': Product.objects.create(name='Studio Headphones', sku='SKU-1001', category=headphones,
                                           base_price=Decimal('100.00')),
        'SKU-2002': Product.objects.create(name='Speaker', sku='SKU-2002', category=audio,
                                           base_price=Decimal('50.00')),
        'SKU-3003': Product.objects.create(name='USB Cable', sku='SKU-3003', category=cables,
                                           base_price=Decimal('10.00')),
    }
    return {'audio': audio, 'headphones': headphones, 'cables': cables, 'products': products}


@pytest.fixture
def staff_client(client, django_user_model):
    user = django_user_model.objects.create_user(username='admin', password='secret', is_staff=True)
    client.force_login(user)
    return client
