from django.urls import path

from . import views

urlpatterns = [
    # Checkout
    path('checkout/', views.checkout_create, name='checkout_create'),
    path('checkout/verify/', views.checkout_verify, name='checkout_verify'),
    path('checkout/webhook/', views.stripe_webhook, name='stripe_webhook'),

    # Employee coupons and commissions
    path('coupons/', views.coupon_list, name='coupon_list'),
    path('coupons/validate/', views.coupon_validate, name='coupon_validate'),
    path('coupons/<int:coupon_id>/', views.coupon_detail, name='coupon_detail'),
    path('commissions/', views.my_commissions, name='my_commissions'),

    # Admin payouts
    path('admin/commissions/', views.admin_commission_list, name='admin_commission_list'),
    path('admin/commissions/<int:commission_id>/pay/', views.admin_commission_pay, name='admin_commission_pay'),
]
