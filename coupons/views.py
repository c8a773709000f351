# coupons/views.py
import json
import logging
from functools import wraps

from django.conf import settings
from django.core.paginator import EmptyPage, Paginator
from django.db.models import Q
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from django.views.decorators.cache import never_cache
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods, require_POST
from django.forms.models import model_to_dict

from .cart import CartError
from .forms import CouponForm
from .messages import Reason, discount_label, pick_locale, reason_messages
from .models import Coupon
from .services import deactivate_expired
from .validation import (
    CouponFailure, evaluate_auto_apply, list_auto_apply_candidates, money, refresh_cart_coupons,
    validate,
)

logger = logging.getLogger(__name__)


class BadRequest(ValueError):
    pass


def staff_required(view_func):
    """Only authenticated staff users may reach the back-office endpoints."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if request.user.is_authenticated and request.user.is_staff:
            return view_func(request, *args, **kwargs)
        return JsonResponse({'success': False, 'message': 'Staff access required'}, status=403)
    return wrapper


def _json_body(request):
    try:
        data = json.loads(request.body.decode('utf-8') or '{}')
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise BadRequest(f'Malformed JSON: {exc}')
    if not isinstance(data, dict):
        raise BadRequest('Request body must be a JSON object')
    return data


def _code_list(data, key):
    value = data.get(key) or []
    if not isinstance(value, list) or not all(isinstance(code, str) for code in value):
        raise BadRequest(f'{key} must be a list of coupon codes')
    return value


def _currency(data):
    value = data.get('currency')
    if value is not None and not isinstance(value, str):
        raise BadRequest('currency must be an ISO 4217 code')
    return value or None


def _user_identifier(data):
    value = data.get('userIdentifier')
    if value is None:
        return None
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise BadRequest('userIdentifier must be a string')
    return str(value).strip() or None


def _invalid_request(locale, detail):
    failure = CouponFailure(
        reason=Reason.INVALID_REQUEST,
        messages=reason_messages(Reason.INVALID_REQUEST),
        locale=locale,
        details={'request': detail},
    )
    return JsonResponse(failure.to_dict(), status=400)


def _validation_response(result):
    status = 200
    if not result.success and result.reason == Reason.INVALID_CART:
        status = 400
    return JsonResponse(result.to_dict(), status=status, json_dumps_params={'ensure_ascii': False})


def _run_validate(request):
    try:
        data = _json_body(request)
    except BadRequest as exc:
        return _invalid_request(pick_locale(None), str(exc))

    locale = pick_locale(data.get('locale'))
    code = data.get('code')
    if not isinstance(code, str) or not code.strip():
        return _invalid_request(locale, 'code is required')
    if 'cartItems' not in data:
        return _invalid_request(locale, 'cartItems is required')
    try:
        existing = _code_list(data, 'existingCouponCodes')
        user_identifier = _user_identifier(data)
        currency = _currency(data)
    except BadRequest as exc:
        return _invalid_request(locale, str(exc))

    result = validate(
        code,
        data['cartItems'],
        currency=currency,
        locale=locale,
        user_identifier=user_identifier,
        existing_coupon_codes=existing,
    )
    return _validation_response(result)


@csrf_exempt
@require_POST
def validate_coupon(request):
    """Storefront preview of a coupon code against the current cart."""
    return _run_validate(request)


@csrf_exempt
@require_POST
def auto_apply(request):
    """
    Auto-apply coupons for a cart.

    Returns the qualifying candidates, the refreshed applied set (stale auto
    coupons removed, new ones added) and the single best auto coupon.
    """
    try:
        data = _json_body(request)
        locale = pick_locale(data.get('locale'))
        applied_codes = _code_list(data, 'appliedCouponCodes')
        user_identifier = _user_identifier(data)
        currency = _currency(data)
    except BadRequest as exc:
        return _invalid_request(pick_locale(None), str(exc))

    cart_items = data.get('cartItems')
    try:
        candidates = list_auto_apply_candidates(cart_items, user_identifier, currency=currency)
        refreshed = refresh_cart_coupons(cart_items, applied_codes, currency, locale, user_identifier)
    except CartError as exc:
        failure = CouponFailure(
            reason=Reason.INVALID_CART,
            messages=reason_messages(Reason.INVALID_CART, detail=str(exc)),
            locale=locale,
            details={'cartItems': str(exc)},
        )
        return JsonResponse(failure.to_dict(), status=400, json_dumps_params={'ensure_ascii': False})

    best = evaluate_auto_apply(cart_items, currency, locale, user_identifier)
    payload = dict(refreshed)
    payload['candidates'] = [
        {
            'code': coupon.code,
            'name': {'en': coupon.name_en, 'he': coupon.name_he},
            'discountLabel': discount_label(coupon, refreshed['currency']),
            'stackable': coupon.stackable,
        }
        for coupon in candidates
    ]
    payload['best'] = best.to_dict()
    return JsonResponse(payload, json_dumps_params={'ensure_ascii': False})


@csrf_exempt
@require_POST
@staff_required
def admin_test_coupon(request):
    """Back-office dry run; identical to the storefront preview, never redeems."""
    return _run_validate(request)


# ============================================
# ADMIN CRUD
# ============================================

def coupon_to_dict(coupon):
    currency = getattr(settings, 'COUPON_DEFAULT_CURRENCY', 'ILS')
    data = {
        'id': coupon.pk,
        'code': coupon.code,
        'name': {'en': coupon.name_en, 'he': coupon.name_he},
        'description': {'en': coupon.description_en, 'he': coupon.description_he},
        'discountType': coupon.discount_type,
        'discountValue': money(coupon.discount_value) if coupon.discount_value is not None else None,
        'discountLabel': discount_label(coupon, currency),
        'minCartValue': money(coupon.min_cart_value) if coupon.min_cart_value is not None else None,
        'startDate': coupon.start_date.isoformat() if coupon.start_date else None,
        'endDate': coupon.end_date.isoformat() if coupon.end_date else None,
        'usageLimit': coupon.usage_limit,
        'usageLimitPerUser': coupon.usage_limit_per_user,
        'usageCount': coupon.usage_count,
        'stackable': coupon.stackable,
        'autoApply': coupon.auto_apply,
        'eligibleProducts': coupon.eligible_products,
        'eligibleCategories': coupon.eligible_categories,
        'bogoBuyQuantity': coupon.bogo_buy_quantity,
        'bogoGetQuantity': coupon.bogo_get_quantity,
        'bogoEligibleSkus': coupon.bogo_eligible_skus,
        'isActive': coupon.is_active,
        'createdAt': coupon.created_at.isoformat(),
        'updatedAt': coupon.updated_at.isoformat() if coupon.updated_at else None,
    }
    return data


# camelCase request keys -> CouponForm fields
FORM_FIELDS = {
    'code': 'code',
    'nameEn': 'name_en',
    'nameHe': 'name_he',
    'descriptionEn': 'description_en',
    'descriptionHe': 'description_he',
    'discountType': 'discount_type',
    'discountValue': 'discount_value',
    'minCartValue': 'min_cart_value',
    'startDate': 'start_date',
    'endDate': 'end_date',
    'usageLimit': 'usage_limit',
    'usageLimitPerUser': 'usage_limit_per_user',
    'stackable': 'stackable',
    'autoApply': 'auto_apply',
    'eligibleProducts': 'eligible_products',
    'eligibleCategories': 'eligible_categories',
    'bogoBuyQuantity': 'bogo_buy_quantity',
    'bogoGetQuantity': 'bogo_get_quantity',
    'bogoEligibleSkus': 'bogo_eligible_skus',
    'isActive': 'is_active',
}


def _form_data(payload, instance=None):
    data = {}
    if instance is not None:
        data.update(model_to_dict(instance, fields=CouponForm._meta.fields))
    elif 'isActive' not in payload:
        data['is_active'] = True
    name = payload.get('name')
    if isinstance(name, dict):
        payload.setdefault('nameEn', name.get('en'))
        payload.setdefault('nameHe', name.get('he'))
    description = payload.get('description')
    if isinstance(description, dict):
        payload.setdefault('descriptionEn', description.get('en'))
        payload.setdefault('descriptionHe', description.get('he'))
    for key, field_name in FORM_FIELDS.items():
        if key in payload:
            data[field_name] = payload[key]
        elif field_name in payload:
            data[field_name] = payload[field_name]
    # Unchecked booleans are simply absent from form data.
    return {key: value for key, value in data.items() if value is not False and value is not None}


def _form_errors(form):
    return JsonResponse({'success': False, 'errors': form.errors.get_json_data()}, status=400)


def _filtered_coupons(params):
    coupons = Coupon.objects.all()

    status = params.get('status', 'all')
    if status == 'active':
        coupons = coupons.filter(is_active=True)
    elif status == 'inactive':
        coupons = coupons.filter(is_active=False)

    discount_type = params.get('type')
    if discount_type:
        coupons = coupons.filter(discount_type=discount_type)

    auto = params.get('autoApply')
    if auto in ('true', '1'):
        coupons = coupons.filter(auto_apply=True)
    elif auto in ('false', '0'):
        coupons = coupons.filter(auto_apply=False)

    search = params.get('search', '').strip()
    if search:
        coupons = coupons.filter(
            Q(code__icontains=search) |
            Q(name_en__icontains=search) |
            Q(name_he__icontains=search)
        )

    for key, lookup in (('expiresBefore', 'end_date__lte'), ('expiresAfter', 'end_date__gte')):
        raw = params.get(key)
        if raw:
            moment = parse_datetime(raw)
            if moment is None:
                raise BadRequest(f'{key} must be an ISO 8601 datetime')
            if timezone.is_naive(moment):
                moment = timezone.make_aware(moment)
            coupons = coupons.filter(**{lookup: moment})

    return coupons.order_by('-created_at', '-id')


def _page_params(params):
    default_size = getattr(settings, 'COUPON_ADMIN_PAGE_SIZE', 20)
    try:
        page = int(params.get('page', 1))
        limit = int(params.get('limit', default_size))
    except (TypeError, ValueError):
        raise BadRequest('page and limit must be integers')
    return max(page, 1), min(max(limit, 1), 100)


@csrf_exempt
@never_cache
@staff_required
@require_http_methods(['GET', 'POST'])
def admin_coupons(request):
    """List coupons (filters + pagination) or create one."""
    if request.method == 'POST':
        try:
            payload = _json_body(request)
        except BadRequest as exc:
            return JsonResponse({'success': False, 'message': str(exc)}, status=400)
        form = CouponForm(_form_data(payload))
        if not form.is_valid():
            return _form_errors(form)
        coupon = form.save()
        logger.info("Coupon %s created by %s", coupon.code, request.user)
        return JsonResponse({'success': True, 'coupon': coupon_to_dict(coupon)}, status=201)

    try:
        coupons = _filtered_coupons(request.GET)
        page_number, limit = _page_params(request.GET)
    except BadRequest as exc:
        return JsonResponse({'success': False, 'message': str(exc)}, status=400)

    paginator = Paginator(coupons, limit)
    try:
        page = paginator.page(page_number)
    except EmptyPage:
        page = None
    rows = list(page.object_list) if page else []
    deactivate_expired(rows, timezone.now())

    return JsonResponse({
        'success': True,
        'coupons': [coupon_to_dict(coupon) for coupon in rows],
        'pagination': {
            'page': page_number,
            'limit': limit,
            'total': paginator.count,
            'totalPages': paginator.num_pages,
        },
    })


@csrf_exempt
@never_cache
@staff_required
@require_http_methods(['GET', 'POST'])
def admin_coupon_detail(request, coupon_id):
    coupon = get_object_or_404(Coupon, id=coupon_id)

    if request.method == 'POST':
        try:
            payload = _json_body(request)
        except BadRequest as exc:
            return JsonResponse({'success': False, 'message': str(exc)}, status=400)
        form = CouponForm(_form_data(payload, instance=coupon), instance=coupon)
        if not form.is_valid():
            return _form_errors(form)
        coupon = form.save()
        logger.info("Coupon %s updated by %s", coupon.code, request.user)

    return JsonResponse({'success': True, 'coupon': coupon_to_dict(coupon)})


@csrf_exempt
@require_POST
@staff_required
def admin_deactivate_coupon(request, coupon_id):
    """Logical delete: redemptions keep pointing at the coupon."""
    coupon = get_object_or_404(Coupon, id=coupon_id)
    coupon.deactivate()
    logger.info("Coupon %s deactivated by %s", coupon.code, request.user)
    return JsonResponse({
        'success': True,
        'isActive': coupon.is_active,
        'message': 'Coupon deactivated successfully',
    })
