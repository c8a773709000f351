from django.urls import path
from . import views

urlpatterns = [
    path('complete/', views.complete_order, name='complete_order'),
]
