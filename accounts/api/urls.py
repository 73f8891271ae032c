from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from . import views

urlpatterns = [
    # JWT auth
    path('auth/token/', TokenObtainPairView.as_view(), name='token_obtain'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    path('account/allowance/', views.allowance_summary, name='allowance_summary'),

    # Super-user management
    path('admin/super-users/', views.super_users, name='super_users'),
    path('admin/users/<int:user_id>/role/', views.change_user_role, name='change_user_role'),
]
