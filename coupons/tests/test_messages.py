from decimal import Decimal

import pytest
from django.test import override_settings

from coupons.messages import (
    REASON_MESSAGES, Reason, discount_label, format_money, pick_locale, plain_number, reason_messages,
)
from coupons.models import Coupon, DiscountType


def test_every_reason_has_both_locales():
    assert set(REASON_MESSAGES) == set(Reason)
    for reason in Reason:
        messages = reason_messages(reason, code='X', applied='Y', min_cart='₪1', detail='d')
        assert messages['en'] and messages['he']


def test_reason_placeholders_are_filled():
    messages = reason_messages(Reason.NOT_STACKABLE, code='SAVE10', applied='VIP')

    assert 'SAVE10' in messages['en']
    assert 'VIP' in messages['he']


@pytest.mark.parametrize('value, expected', [
    (Decimal('10.00'), '10'),
    (Decimal('12.50'), '12.5'),
    (Decimal('0.05'), '0.05'),
])
def test_plain_number(value, expected):
    assert plain_number(value) == expected


def test_currency_symbols():
    assert format_money(Decimal('20'), 'ILS') == '₪20'
    assert format_money(Decimal('20'), 'usd') == '$20'
    assert format_money(Decimal('20'), 'EUR') == '€20'


def test_discount_labels():
    percent = Coupon(discount_type=DiscountType.PERCENT_SPECIFIC, discount_value=Decimal('15.00'))
    fixed = Coupon(discount_type=DiscountType.FIXED, discount_value=Decimal('20.00'))
    bogo = Coupon(discount_type=DiscountType.BOGO, bogo_buy_quantity=2, bogo_get_quantity=1)

    assert discount_label(percent, 'ILS') == {'en': '15% OFF', 'he': '15% הנחה'}
    assert discount_label(fixed, 'USD')['en'] == '$20 off'
    assert discount_label(bogo, 'ILS') == {'en': 'Buy 2 get 1 free', 'he': 'קנה 2 קבל 1 חינם'}


@override_settings(COUPON_DEFAULT_LOCALE='he')
def test_unknown_locale_falls_back_to_default():
    assert pick_locale('fr') == 'he'
    assert pick_locale('en') == 'en'
