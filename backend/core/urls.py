"""
Ombor — API URL Configuration
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView
from . import views

router = DefaultRouter()
router.register(r'admins', views.AdminViewSet, basename='admins')
router.register(r'warehouses', views.WarehouseViewSet, basename='warehouses')
router.register(r'tenants', views.TenantViewSet, basename='tenants')
router.register(r'payments', views.PaymentViewSet, basename='payments')
router.register(r'notifications', views.NotificationViewSet, basename='notifications')

urlpatterns = [
    # Auth
    path('auth/login/', views.LoginView.as_view(), name='login'),
    path('auth/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('auth/me/', views.SessionView.as_view(), name='me'),
    path('auth/route-check/', views.RouteCheckView.as_view(), name='route-check'),

    # One-time setup
    path('setup/status/', views.SetupStatusView.as_view(), name='setup-status'),
    path('setup/owner/', views.OwnerSetupView.as_view(), name='setup-owner'),

    # Profile
    path('profile/', views.ProfileView.as_view(), name='profile'),

    # Dashboard & Statistics
    path('dashboard/', views.DashboardView.as_view(), name='dashboard'),
    path('statistics/', views.StatisticsView.as_view(), name='statistics'),

    path('', include(router.urls)),
]
