from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from coupons.cart import parse_cart_items
from coupons.eligibility import evaluate
from coupons.messages import Reason
from coupons.models import CouponUserUsage, DiscountType
from coupons.validation import load_categories
from products.models import Product

from .factories import item

pytestmark = pytest.mark.django_db


def lines(*items):
    return parse_cart_items(list(items))


def test_active_coupon_is_eligible(make_coupon):
    verdict = evaluate(make_coupon('SAVE10'), lines(item('A', 1, 100)), timezone.now())

    assert verdict.ok
    assert verdict.messages == {}


def test_empty_cart_is_not_eligible(make_coupon):
    verdict = evaluate(make_coupon('SAVE10'), [], timezone.now())

    assert verdict.reason == Reason.NOT_ELIGIBLE
    assert 'empty' in verdict.messages['en']


def test_inactive(make_coupon):
    verdict = evaluate(make_coupon('OFF', is_active=False), lines(item('A', 1, 100)), timezone.now())

    assert verdict.reason == Reason.INACTIVE


def test_not_started(make_coupon):
    now = timezone.now()
    c = make_coupon('SOON', start_date=now + timedelta(days=1))

    assert evaluate(c, lines(item('A', 1, 100)), now).reason == Reason.NOT_STARTED


def test_expired_wins_over_other_failures(make_coupon):
    now = timezone.now()
    c = make_coupon(
        'OLD', discount_type=DiscountType.PERCENT_SPECIFIC, eligible_products=['NOPE'],
        end_date=now - timedelta(seconds=1), min_cart_value=Decimal('1000'), usage_limit=1, usage_count=1,
    )

    verdict = evaluate(c, lines(item('A', 1, 5)), now, applied_codes=['OTHER'])

    assert verdict.reason == Reason.EXPIRED
    assert verdict.messages['he']


def test_min_cart_boundary_is_inclusive(make_coupon):
    c = make_coupon('MIN100', min_cart_value=Decimal('100.00'))
    now = timezone.now()

    assert evaluate(c, lines(item('A', 1, '100.00')), now).ok

    below = evaluate(c, lines(item('A', 1, '99.99')), now, currency='ILS')
    assert below.reason == Reason.BELOW_MIN_CART
    assert '₪100' in below.messages['en']


def test_usage_limit_reached(make_coupon):
    c = make_coupon('LIMITED', usage_limit=2, usage_count=2)

    assert evaluate(c, lines(item('A', 1, 10)), timezone.now()).reason == Reason.USAGE_LIMIT_REACHED


def test_user_limit_only_checked_for_known_user(make_coupon):
    c = make_coupon('ONCE', usage_limit_per_user=1)
    CouponUserUsage.objects.create(coupon=c, user_identifier='user-1', usage_count=1)
    cart = lines(item('A', 1, 10))
    now = timezone.now()

    assert evaluate(c, cart, now, user_identifier='user-1').reason == Reason.USER_LIMIT_REACHED
    assert evaluate(c, cart, now, user_identifier='user-2').ok
    assert evaluate(c, cart, now).ok


def test_specific_items_not_in_cart(make_coupon):
    c = make_coupon('SPEC', discount_type=DiscountType.PERCENT_SPECIFIC, eligible_products=['SKU-9'])

    assert evaluate(c, lines(item('SKU-1', 1, 10)), timezone.now()).reason == Reason.NOT_ELIGIBLE


def test_category_lookup_includes_parent_categories(make_coupon, catalog):
    c = make_coupon('AUDIO', discount_type=DiscountType.PERCENT_SPECIFIC,
                    eligible_categories=[catalog['audio'].slug])
    cart = lines(item('sku-1001', 1, 100))

    verdict = evaluate(c, cart, timezone.now(), categories=load_categories(cart))

    assert verdict.ok


def test_category_by_id(make_coupon, catalog):
    c = make_coupon('CABLES', discount_type=DiscountType.PERCENT_SPECIFIC,
                    eligible_categories=[catalog['cables'].pk])
    cart = lines(item('SKU-1001', 1, 100))

    verdict = evaluate(c, cart, timezone.now(), categories=load_categories(cart))

    assert verdict.reason == Reason.NOT_ELIGIBLE


def test_not_stackable_with_applied_codes(make_coupon):
    c = make_coupon('SOLO', stackable=False)
    cart = lines(item('A', 1, 10))
    now = timezone.now()

    verdict = evaluate(c, cart, now, applied_codes=['OTHER'])
    assert verdict.reason == Reason.NOT_STACKABLE
    assert 'OTHER' in verdict.messages['en']

    assert evaluate(c, cart, now, applied_codes=['SOLO']).ok


def test_category_match_ignores_catalog_sku_case(make_coupon, catalog):
    Product.objects.create(name='Amplifier', sku='Amp-77', category=catalog['headphones'],
                           base_price=Decimal('300.00'))
    c = make_coupon('AUDIO', discount_type=DiscountType.PERCENT_SPECIFIC, eligible_categories=['audio'])
    cart = lines(item('AMP-77', 1, 300))

    verdict = evaluate(c, cart, timezone.now(), categories=load_categories(cart))

    assert verdict.ok
