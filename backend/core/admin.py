from django.contrib import admin
from .models import (
    User, UserRole, AdminStatus, Warehouse, Tenant, Payment, Notification,
)

@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ['email', 'full_name', 'phone', 'is_active', 'created_at']
    search_fields = ['email', 'full_name', 'phone']
    list_filter = ['is_active', 'user_role__role']

@admin.register(UserRole)
class UserRoleAdmin(admin.ModelAdmin):
    list_display = ['user', 'role', 'created_at']
    list_filter = ['role']

@admin.register(AdminStatus)
class AdminStatusAdmin(admin.ModelAdmin):
    list_display = ['admin', 'is_blocked', 'blocked_at', 'blocked_reason']
    list_filter = ['is_blocked']

@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ['name', 'admin', 'address', 'is_active']
    list_filter = ['is_active', 'admin']
    search_fields = ['name', 'address']

@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'phone', 'warehouse', 'product_type', 'monthly_rent', 'is_active']
    list_filter = ['is_active', 'warehouse', 'product_type']
    search_fields = ['full_name', 'phone', 'product_type']

@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['tenant', 'year', 'month', 'expected_amount', 'carry_over_debt',
                    'paid_amount', 'payment_date']
    list_filter = ['year', 'month']
    search_fields = ['tenant__full_name', 'tenant__phone']

admin.site.register(Notification)
