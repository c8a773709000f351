# coupons/messages.py
"""
Shopper-facing coupon texts.

Every reason code maps to one pair of localized strings here, so adding a
locale only touches this module. Templates use ``str.format`` placeholders
that callers fill through ``reason_messages(reason, **params)``.
"""
from decimal import Decimal
from enum import Enum

from django.conf import settings

from .models import DiscountType


class Reason(str, Enum):
    NOT_FOUND = 'NotFound'
    INACTIVE = 'InactiveCoupon'
    NOT_STARTED = 'NotStarted'
    EXPIRED = 'Expired'
    BELOW_MIN_CART = 'BelowMinCart'
    USAGE_LIMIT_REACHED = 'UsageLimitReached'
    USER_LIMIT_REACHED = 'UserLimitReached'
    NOT_ELIGIBLE = 'NotEligible'
    NOT_STACKABLE = 'NotStackable'
    INVALID_CART = 'InvalidCart'
    INVALID_REQUEST = 'InvalidRequest'
    NO_AUTO_COUPON = 'NoAutoCoupon'
    ALREADY_REDEEMED = 'AlreadyRedeemed'

    def __str__(self):
        return self.value


REASON_MESSAGES = {
    Reason.NOT_FOUND: (
        'Invalid or expired coupon.',
        'קופון זה אינו תקף או שפג תוקפו.',
    ),
    Reason.INACTIVE: (
        'This coupon is not active at the moment.',
        'קופון זה אינו פעיל כעת.',
    ),
    Reason.NOT_STARTED: (
        'This coupon will be active soon. Please try again later.',
        'קופון זה יופעל בקרוב. אנא נסה במועד מאוחר יותר.',
    ),
    Reason.EXPIRED: (
        'This coupon has expired.',
        'תוקף הקופון פג.',
    ),
    Reason.BELOW_MIN_CART: (
        'Add more items to reach {min_cart} and unlock this coupon.',
        'הוסף פריטים נוספים כדי להגיע לסך {min_cart} ולהפעיל את הקופון.',
    ),
    Reason.USAGE_LIMIT_REACHED: (
        'This coupon has reached its usage limit.',
        'קופון זה מיצה את כמות השימושים המותרת.',
    ),
    Reason.USER_LIMIT_REACHED: (
        'You have already used this coupon the maximum number of times.',
        'הגעת לכמות השימושים המותרת בקופון זה.',
    ),
    Reason.NOT_ELIGIBLE: (
        'This coupon does not apply to the items in your cart.',
        'קופון זה אינו חל על הפריטים בעגלה.',
    ),
    Reason.NOT_STACKABLE: (
        'Coupon {code} cannot be combined with the coupons already applied ({applied}).',
        'קופון {code} אינו ניתן לשילוב עם קופונים קיימים ({applied}).',
    ),
    Reason.INVALID_CART: (
        'The cart could not be read: {detail}',
        'לא ניתן לקרוא את העגלה: {detail}',
    ),
    Reason.INVALID_REQUEST: (
        'Invalid coupon request payload.',
        'נתוני בקשת הקופון שגויים.',
    ),
    Reason.NO_AUTO_COUPON: (
        'No automatic coupons available for this cart.',
        'לא נמצאו קופונים אוטומטיים עבור עגלה זו.',
    ),
    Reason.ALREADY_REDEEMED: (
        'This coupon was already redeemed for this order.',
        'הקופון כבר מומש עבור הזמנה זו.',
    ),
}

EMPTY_CART_MESSAGES = (
    'Your cart is empty. Add items before applying a coupon.',
    'העגלה שלך ריקה. הוסף פריטים לפני החלת קופון.',
)

SUCCESS_MESSAGES = (
    'Coupon applied successfully.',
    'הקופון הופעל בהצלחה.',
)

DROPPED_COUPON_MESSAGES = (
    'Coupon {code} was removed from your cart: {reason}',
    'הקופון {code} הוסר מהעגלה: {reason}',
)

LOCALES = ('en', 'he')


def _pair(templates, **params):
    return {locale: text.format(**params) for locale, text in zip(LOCALES, templates)}


def reason_messages(reason, **params):
    params.setdefault('code', '')
    params.setdefault('applied', '')
    params.setdefault('min_cart', '')
    params.setdefault('detail', '')
    return _pair(REASON_MESSAGES[Reason(reason)], **params)


def empty_cart_messages():
    return _pair(EMPTY_CART_MESSAGES)


def success_messages():
    return _pair(SUCCESS_MESSAGES)


def dropped_coupon_messages(code, reason):
    reasons = reason_messages(reason)
    return {
        locale: text.format(code=code, reason=reasons[locale])
        for locale, text in zip(LOCALES, DROPPED_COUPON_MESSAGES)
    }


def pick_locale(locale):
    supported = getattr(settings, 'COUPON_SUPPORTED_LOCALES', LOCALES)
    if locale in supported:
        return locale
    return getattr(settings, 'COUPON_DEFAULT_LOCALE', 'en')


def currency_symbol(currency):
    symbols = getattr(settings, 'COUPON_CURRENCY_SYMBOLS', {})
    default = getattr(settings, 'COUPON_DEFAULT_CURRENCY', 'ILS')
    return symbols.get((currency or '').upper(), symbols.get(default, ''))


def plain_number(value):
    """10.00 -> '10', 12.50 -> '12.5'."""
    value = Decimal(value or 0)
    if value == value.to_integral_value():
        return f"{value.quantize(Decimal('1')):f}"
    return f"{value.normalize():f}"


def format_money(amount, currency):
    return f"{currency_symbol(currency)}{plain_number(amount)}"


def discount_label(coupon, currency):
    match coupon.discount_type:
        case DiscountType.PERCENT_ALL | DiscountType.PERCENT_SPECIFIC:
            pct = plain_number(coupon.discount_value)
            return {'en': f"{pct}% OFF", 'he': f"{pct}% הנחה"}
        case DiscountType.FIXED:
            amount = format_money(coupon.discount_value, currency)
            return {'en': f"{amount} off", 'he': f"{amount} הנחה"}
        case DiscountType.BOGO:
            buy = coupon.bogo_buy_quantity or 1
            get = coupon.bogo_get_quantity or 1
            return {'en': f"Buy {buy} get {get} free", 'he': f"קנה {buy} קבל {get} חינם"}
    return {'en': 'Coupon applied', 'he': 'קופון הופעל'}
