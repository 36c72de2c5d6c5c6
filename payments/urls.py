# payments/urls.py

from django.urls import path

from . import views

urlpatterns = [
    path('request/', views.request_payment, name='payment-request'),
    path('confirm/', views.confirm_payment, name='payment-confirm'),
    path('<int:pk>/cancel/', views.cancel_payment, name='payment-cancel'),
    path('status/<str:key>/', views.payment_status, name='payment-status'),
    path('history/', views.payment_history, name='payment-history'),
    path('stats/', views.payment_stats, name='payment-stats'),
    path('calculate-fee/', views.calculate_fee, name='payment-calculate-fee'),
    path('wallet/', views.wallet_detail, name='wallet-detail'),

    path('settlements/', views.my_settlements, name='settlement-list'),
    path('settlements/stats/', views.settlement_stats, name='settlement-stats'),

    path('admin/settlements/', views.admin_settlements, name='admin-settlement-list'),
    path('admin/settlements/<int:pk>/process/', views.admin_process_settlement, name='admin-settlement-process'),
    path('admin/settlements/<int:pk>/retry/', views.admin_retry_settlement, name='admin-settlement-retry'),
    path('admin/settlements/job/<int:job_id>/', views.admin_create_settlement, name='admin-settlement-create'),
]
