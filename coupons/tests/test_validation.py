import json
from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from coupons.messages import Reason
from coupons.models import Coupon, DiscountType
from coupons.validation import evaluate_auto_apply, list_auto_apply_candidates, refresh_cart_coupons, validate

from .factories import item

pytestmark = pytest.mark.django_db


def test_successful_preview_payload(make_coupon):
    make_coupon('SAVE10', discount_value='10')

    result = validate('save10', [item('SKU-1', 2, 50), item('SKU-2', 1, '33.35')], currency='ILS')

    assert result.success
    payload = result.to_dict()
    assert payload['discountAmount'] == 13.34
    assert payload['newSubtotal'] == 120.01
    assert payload['coupon']['code'] == 'SAVE10'
    assert payload['coupon']['discountLabel'] == {'en': '10% OFF', 'he': '10% הנחה'}
    assert sum(i['discountAmount'] for i in payload['discountedItems']) == pytest.approx(13.34)
    assert set(payload['messages']) == {'en', 'he'}


def test_validate_is_deterministic(make_coupon):
    make_coupon('SAVE10')
    now = timezone.now()
    cart = [item('SKU-1', 3, '19.99')]

    first = json.dumps(validate('SAVE10', cart, now=now).to_dict(), ensure_ascii=False)
    second = json.dumps(validate('SAVE10', cart, now=now).to_dict(), ensure_ascii=False)

    assert first == second


def test_validate_does_not_touch_counters(make_coupon):
    c = make_coupon('SAVE10', usage_limit=5)

    validate('SAVE10', [item('SKU-1', 1, 10)], user_identifier='user-1')

    c.refresh_from_db()
    assert c.usage_count == 0
    assert not c.user_usages.exists()


def test_unknown_code_is_not_found(db):
    result = validate('NOPE', [item('SKU-1', 1, 10)], locale='he')

    assert not result.success
    assert result.reason == Reason.NOT_FOUND
    assert result.to_dict()['message'] == result.messages['he']


def test_invalid_cart(make_coupon):
    make_coupon('SAVE10')

    result = validate('SAVE10', [{'sku': 'A', 'quantity': -1, 'unitPrice': 1}])

    assert result.reason == Reason.INVALID_CART
    assert 'quantity' in result.to_dict()['details']['cartItems']


def test_expired_coupon(make_coupon):
    make_coupon('OLD', end_date=timezone.now() - timedelta(days=1))

    assert validate('OLD', [item('SKU-1', 1, 10)]).reason == Reason.EXPIRED


def test_zero_discount_is_not_eligible(make_coupon):
    make_coupon('BOGO', discount_type=DiscountType.BOGO, discount_value=None,
                bogo_buy_quantity=2, bogo_get_quantity=1)

    assert validate('BOGO', [item('SKU-1', 2, 10)]).reason == Reason.NOT_ELIGIBLE


def test_stacked_preview_with_existing_codes(make_coupon):
    make_coupon('A20', discount_type=DiscountType.FIXED, discount_value='20', stackable=True)
    make_coupon('B10', stackable=True)

    result = validate('A20', [item('SKU-1', 1, 200)], existing_coupon_codes=['B10'])

    assert result.success
    assert result.discount_amount == Decimal('38.00')
    assert result.new_subtotal == Decimal('162.00')
    assert result.coupon_discount == Decimal('20.00')
    assert [c['code'] for c in result.to_dict()['appliedCoupons']] == ['A20', 'B10']


def test_non_stackable_existing_coupon_blocks(make_coupon):
    make_coupon('SOLO', stackable=False)
    make_coupon('NEW', stackable=True)

    result = validate('NEW', [item('SKU-1', 1, 200)], existing_coupon_codes=['SOLO'])

    assert result.reason == Reason.NOT_STACKABLE


def test_stale_existing_code_is_dropped_with_warning(make_coupon):
    make_coupon('NEW')
    make_coupon('STALE', end_date=timezone.now() - timedelta(days=1))

    result = validate('NEW', [item('SKU-1', 1, 200)], existing_coupon_codes=['STALE'])

    assert result.success
    assert result.discount_amount == Decimal('20.00')
    assert result.to_dict()['warnings'][0]['code'] == 'STALE'


def test_auto_apply_candidates_and_best(make_coupon):
    make_coupon('AUTO5', discount_value='5', auto_apply=True)
    make_coupon('AUTO10', discount_value='10', auto_apply=True)
    make_coupon('MANUAL', discount_value='50')
    cart = [item('SKU-1', 1, 100)]

    assert [c.code for c in list_auto_apply_candidates(cart)] == ['AUTO5', 'AUTO10']

    best = evaluate_auto_apply(cart)
    assert best.success
    assert best.coupon.code == 'AUTO10'


def test_no_auto_coupon(db):
    result = evaluate_auto_apply([item('SKU-1', 1, 100)])

    assert result.reason == Reason.NO_AUTO_COUPON


def test_refresh_cart_coupons_payload(make_coupon):
    make_coupon('AUTO10', auto_apply=True, stackable=True)

    payload = refresh_cart_coupons([item('SKU-1', 1, 100)], ['GONE'])

    assert payload['appliedCouponCodes'] == ['AUTO10']
    assert payload['removed'] == ['GONE']
    assert payload['warnings'][0]['reasonCode'] == Reason.NOT_FOUND.value
    assert payload['newSubtotal'] == 90.0


def test_coupons_are_never_deleted(make_coupon):
    c = make_coupon('KEEP')

    c.delete()
    Coupon.objects.filter(code='KEEP').delete()

    c.refresh_from_db()
    assert not c.is_active


def test_sub_cent_price_is_an_invalid_cart(make_coupon):
    make_coupon('TEN', discount_value='10')

    result = validate('TEN', [item('SKU-1', 1000, '0.005')])

    assert result.reason == Reason.INVALID_CART
    assert 'decimal places' in result.to_dict()['details']['cartItems']
