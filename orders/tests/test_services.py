from decimal import Decimal

import pytest

from coupons.cart import CartError
from coupons.ledger import RedemptionRejected
from coupons.messages import Reason
from coupons.models import Coupon, CouponRedemption, DiscountType
from coupons.services import record_redemption
from coupons.tests.factories import item
from orders import services
from orders.models import Order
from orders.services import CouponsChanged, place_order

pytestmark = pytest.mark.django_db


def test_order_with_stacked_coupons(make_coupon):
    make_coupon('A20', discount_type=DiscountType.FIXED, discount_value='20', stackable=True)
    make_coupon('B10', stackable=True)

    order = place_order([item('SKU-1', 1, 150), item('SKU-2', 1, 50)], ['b10', 'a20'], user_identifier='user-1')

    assert order.subtotal == Decimal('200.00')
    assert order.discount_amount == Decimal('38.00')
    assert order.total_amount == Decimal('162.00')
    assert order.coupon_codes == ['A20', 'B10']
    assert sum(i.discount_amount for i in order.items.all()) == Decimal('38.00')
    assert Coupon.objects.get(code='A20').usage_count == 1
    redemption = CouponRedemption.objects.get(code='B10')
    assert redemption.order_reference == order.order_number
    assert redemption.discount_amount == Decimal('18.00')


def test_order_without_coupons(db):
    order = place_order([item('SKU-1', 2, 25)])

    assert order.total_amount == Decimal('50.00')
    assert order.coupon_codes == []


def test_empty_cart_is_rejected(db):
    with pytest.raises(CartError):
        place_order([])


def test_stale_coupon_blocks_checkout(make_coupon):
    make_coupon('MIN', min_cart_value=Decimal('500'))

    with pytest.raises(CouponsChanged) as exc:
        place_order([item('SKU-1', 1, 100)], ['MIN'])

    assert exc.value.warnings[0]['reasonCode'] == Reason.BELOW_MIN_CART.value
    assert not Order.objects.exists()


def test_incompatible_coupons_block_checkout(make_coupon):
    make_coupon('SOLO')
    make_coupon('OTHER', stackable=True)

    with pytest.raises(CouponsChanged):
        place_order([item('SKU-1', 1, 100)], ['SOLO', 'OTHER'])


def test_lost_race_rolls_back_order_and_earlier_increments(make_coupon, monkeypatch):
    make_coupon('A20', discount_type=DiscountType.FIXED, discount_value='20', stackable=True)
    make_coupon('B10', stackable=True, usage_limit=1)

    def flaky(code, order_reference, **kwargs):
        if code == 'B10':
            # Another checkout took the last redemption after revalidation.
            Coupon.objects.filter(code='B10').update(usage_count=1)
        return record_redemption(code, order_reference, **kwargs)

    monkeypatch.setattr(services, 'record_redemption', flaky)

    with pytest.raises(RedemptionRejected) as exc:
        place_order([item('SKU-1', 1, 200)], ['A20', 'B10'])

    assert exc.value.reason == Reason.USAGE_LIMIT_REACHED
    assert not Order.objects.exists()
    assert Coupon.objects.get(code='A20').usage_count == 0
    assert not CouponRedemption.objects.exists()
