"""
URL configuration for storefront project.

The coupon engine and the order completion endpoint are JSON APIs consumed
by the storefront and back-office frontends.
"""
from django.contrib import admin
from django.urls import path, include


urlpatterns = [
    path('adminn/', admin.site.urls),
    path('coupons/', include('coupons.urls')),
    path('orders/', include('orders.urls')),
]
