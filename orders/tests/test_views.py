import json

import pytest
from django.urls import reverse

from coupons.models import Coupon
from coupons.services import record_redemption
from coupons.tests.factories import item
from orders import services
from orders.models import Order

pytestmark = pytest.mark.django_db


def post_json(client, payload):
    return client.post(reverse('complete_order'), data=json.dumps(payload), content_type='application/json')


def test_complete_order(client, make_coupon):
    make_coupon('SAVE10', usage_limit=5)

    response = post_json(client, {'cartItems': [item('SKU-1', 1, 100)], 'couponCodes': ['SAVE10']})

    assert response.status_code == 201
    body = response.json()
    assert body['total'] == 90.0
    assert Order.objects.get(order_number=body['orderNumber']).discount_amount == 10
    assert Coupon.objects.get(code='SAVE10').usage_count == 1


def test_lost_race_is_409(client, make_coupon, monkeypatch):
    make_coupon('LAST', usage_limit=1)

    def late(code, order_reference, **kwargs):
        Coupon.objects.filter(code=code).update(usage_count=1)
        return record_redemption(code, order_reference, **kwargs)

    monkeypatch.setattr(services, 'record_redemption', late)

    response = post_json(client, {'cartItems': [item('SKU-1', 1, 100)], 'couponCodes': ['LAST']})

    assert response.status_code == 409
    assert response.json()['reasonCode'] == 'UsageLimitReached'
    assert not Order.objects.exists()


def test_exhausted_coupon_is_409_before_writing(client, make_coupon):
    make_coupon('USED', usage_limit=1, usage_count=1)

    response = post_json(client, {'cartItems': [item('SKU-1', 1, 100)], 'couponCodes': ['USED'], 'locale': 'he'})

    assert response.status_code == 409
    body = response.json()
    assert body['reasonCode'] == 'UsageLimitReached'
    assert body['message'] == body['messages']['he']


def test_invalid_cart_is_400(client):
    response = post_json(client, {'cartItems': [{'sku': 'A'}]})

    assert response.status_code == 400
    assert response.json()['reasonCode'] == 'InvalidCart'
