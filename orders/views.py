# orders/views.py
import json
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from coupons.cart import CartError
from coupons.ledger import RedemptionRejected
from coupons.messages import Reason, pick_locale, reason_messages

from .services import CouponsChanged, place_order

logger = logging.getLogger(__name__)


def _failure(reason, locale, status, messages=None, **extra):
    messages = messages or reason_messages(reason, **extra.pop('params', {}))
    payload = {
        'success': False,
        'reasonCode': Reason(reason).value,
        'messages': messages,
        'message': messages[locale],
    }
    payload.update(extra)
    return JsonResponse(payload, status=status, json_dumps_params={'ensure_ascii': False})


@csrf_exempt
@require_POST
def complete_order(request):
    """
    Place the order and redeem its coupons in one transaction.

    A lost redemption race answers 409 so the client revalidates the cart.
    """
    try:
        data = json.loads(request.body.decode('utf-8') or '{}')
    except (UnicodeDecodeError, json.JSONDecodeError):
        return _failure(Reason.INVALID_REQUEST, pick_locale(None), 400)
    if not isinstance(data, dict):
        return _failure(Reason.INVALID_REQUEST, pick_locale(None), 400)

    locale = pick_locale(data.get('locale'))
    codes = data.get('couponCodes') or []
    if not isinstance(codes, list) or not all(isinstance(code, str) for code in codes):
        return _failure(Reason.INVALID_REQUEST, locale, 400)
    user_identifier = data.get('userIdentifier')
    if user_identifier is not None and not isinstance(user_identifier, str):
        return _failure(Reason.INVALID_REQUEST, locale, 400)

    try:
        order = place_order(
            data.get('cartItems'),
            coupon_codes=codes,
            user_identifier=user_identifier,
            currency=data.get('currency'),
        )
    except CartError as exc:
        return _failure(Reason.INVALID_CART, locale, 400, params={'detail': str(exc)})
    except CouponsChanged as exc:
        first = exc.warnings[0]
        return _failure(first['reasonCode'], locale, 409, messages=first['messages'],
                        code=first['code'], warnings=exc.warnings)
    except RedemptionRejected as exc:
        logger.warning("Checkout lost redemption race on %s: %s", exc.code, exc.reason.value)
        return _failure(exc.reason, locale, 409, code=exc.code)

    return JsonResponse({
        'success': True,
        'orderNumber': order.order_number,
        'currency': order.currency,
        'subtotal': float(order.subtotal),
        'discountAmount': float(order.discount_amount),
        'total': float(order.total_amount),
        'couponCodes': order.coupon_codes,
    }, status=201)
