from django.urls import path
from . import views

urlpatterns = [
    path('validate/', views.validate_coupon, name='validate_coupon'),
    path('auto-apply/', views.auto_apply, name='auto_apply_coupons'),
    path('admin/', views.admin_coupons, name='admin_coupons'),
    path('admin/test/', views.admin_test_coupon, name='admin_test_coupon'),
    path('admin/<int:coupon_id>/', views.admin_coupon_detail, name='admin_coupon_detail'),
    path('admin/<int:coupon_id>/deactivate/', views.admin_deactivate_coupon, name='admin_deactivate_coupon'),
]
