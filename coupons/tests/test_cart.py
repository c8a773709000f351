from decimal import Decimal

import pytest

from coupons.cart import CartError, cart_subtotal, parse_cart_items

from .factories import item


def test_parses_lines_in_cart_order():
    lines = parse_cart_items([item('SKU-1', 2, 10), item(' sku-2 ', 1, '5.5')])

    assert [line.sku for line in lines] == ['SKU-1', 'sku-2']
    assert [line.index for line in lines] == [0, 1]
    assert lines[1].unit_price == Decimal('5.50')
    assert lines[1].key == 'sku-2'
    assert cart_subtotal(lines) == Decimal('25.50')


def test_price_alias_and_sale_price_override():
    lines = parse_cart_items([
        {'sku': 'A', 'quantity': 1, 'price': 40},
        {'sku': 'B', 'quantity': 2, 'unitPrice': 30, 'salePrice': 25},
    ])

    assert lines[0].unit_price == Decimal('40.00')
    assert lines[1].unit_price == Decimal('25.00')
    assert lines[1].line_total == Decimal('50.00')


def test_empty_cart_is_parsed():
    assert parse_cart_items([]) == []


@pytest.mark.parametrize('raw', [
    None,
    'SKU-1',
    {'sku': 'SKU-1'},
    [42],
    [{'quantity': 1, 'unitPrice': 1}],
    [{'sku': '  ', 'quantity': 1, 'unitPrice': 1}],
    [{'sku': 'A', 'unitPrice': 1}],
    [{'sku': 'A', 'quantity': 0, 'unitPrice': 1}],
    [{'sku': 'A', 'quantity': 1.5, 'unitPrice': 1}],
    [{'sku': 'A', 'quantity': True, 'unitPrice': 1}],
    [{'sku': 'A', 'quantity': 1}],
    [{'sku': 'A', 'quantity': 1, 'unitPrice': -1}],
    [{'sku': 'A', 'quantity': 1, 'unitPrice': 'abc'}],
    [{'sku': 'A', 'quantity': 1, 'unitPrice': 'NaN'}],
])
def test_malformed_cart_raises(raw):
    with pytest.raises(CartError):
        parse_cart_items(raw)


@pytest.mark.parametrize('field', ['unitPrice', 'price', 'salePrice'])
def test_sub_cent_prices_are_rejected(field):
    raw = {'sku': 'A', 'quantity': 1000}
    if field == 'salePrice':
        raw['unitPrice'] = '1.00'
    raw[field] = '0.005'

    with pytest.raises(CartError, match='2 decimal places'):
        parse_cart_items([raw])


def test_trailing_zeros_are_not_sub_cent():
    lines = parse_cart_items([item('A', 2, '4.500'), item('B', 1, 3.1)])

    assert lines[0].unit_price == Decimal('4.50')
    assert lines[1].unit_price == Decimal('3.10')
