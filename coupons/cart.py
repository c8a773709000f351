# coupons/cart.py
"""Cart input parsing for the coupon engine."""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


class CartError(ValueError):
    """Malformed cart payload; raised before any coupon logic runs."""


@dataclass(frozen=True)
class CartLine:
    index: int
    sku: str
    quantity: int
    unit_price: Decimal

    @property
    def key(self):
        return self.sku.lower()

    @property
    def line_total(self):
        return self.unit_price * self.quantity


def _money(value, field, index):
    if isinstance(value, bool) or value is None:
        raise CartError(f"item {index}: {field} must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise CartError(f"item {index}: {field} must be a number")
    if not amount.is_finite() or amount < 0:
        raise CartError(f"item {index}: {field} must be a non-negative number")
    try:
        cents = amount.quantize(CENT)
    except InvalidOperation:
        raise CartError(f"item {index}: {field} is out of range")
    if cents != amount:
        raise CartError(f"item {index}: {field} must have at most 2 decimal places")
    return cents


def _quantity(value, index):
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise CartError(f"item {index}: quantity must be a positive integer")
    try:
        qty = Decimal(str(value))
    except InvalidOperation:
        raise CartError(f"item {index}: quantity must be a positive integer")
    if not qty.is_finite() or qty != qty.to_integral_value() or qty <= 0:
        raise CartError(f"item {index}: quantity must be a positive integer")
    return int(qty)


def parse_cart_items(raw):
    """
    Turn the request's ``cartItems`` into ``CartLine`` objects.

    Each item needs ``sku``, a positive integer ``quantity`` and a
    ``unitPrice`` (``price`` is accepted too) in whole cents. An optional non-negative
    ``salePrice`` overrides the unit price. An empty list is valid here;
    the eligibility step rejects empty carts.
    """
    if not isinstance(raw, (list, tuple)):
        raise CartError("cartItems must be a list")

    lines = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise CartError(f"item {index}: must be an object")

        sku = item.get('sku')
        if not isinstance(sku, str) or not sku.strip():
            raise CartError(f"item {index}: sku is required")

        if 'quantity' not in item:
            raise CartError(f"item {index}: quantity is required")
        quantity = _quantity(item['quantity'], index)

        if 'unitPrice' in item:
            unit_price = _money(item['unitPrice'], 'unitPrice', index)
        elif 'price' in item:
            unit_price = _money(item['price'], 'price', index)
        else:
            raise CartError(f"item {index}: unitPrice is required")

        sale = item.get('salePrice')
        if sale is not None:
            unit_price = _money(sale, 'salePrice', index)

        lines.append(CartLine(index=index, sku=sku.strip(), quantity=quantity, unit_price=unit_price))
    return lines


def cart_subtotal(lines):
    return sum((line.line_total for line in lines), ZERO)
