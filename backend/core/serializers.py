"""
Ombor — REST API Serializers
"""
from rest_framework import serializers

from .models import (
    User, AdminStatus, Warehouse, Tenant, Payment, Notification,
)
from .permissions import BLOCKED_MESSAGE


# ═══════════════════════════════════════════════════════════
#  AUTH
# ═══════════════════════════════════════════════════════════

class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, data):
        email = data['email'].lower()
        password = data['password']

        try:
            user = User.objects.get(email=email)
        except User.DoesNotExist:
            raise serializers.ValidationError("Noto'g'ri email yoki parol")

        if not user.check_password(password):
            raise serializers.ValidationError("Noto'g'ri email yoki parol")

        if not user.is_active:
            raise serializers.ValidationError("Hisob faol emas.")

        if user.is_blocked:
            raise serializers.ValidationError(BLOCKED_MESSAGE)

        data['user'] = user
        data['role'] = user.role
        return data


class UserSerializer(serializers.ModelSerializer):
    role = serializers.CharField(read_only=True)
    is_blocked = serializers.BooleanField(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'email', 'full_name', 'phone', 'role', 'is_blocked',
                  'is_active', 'created_at']
        read_only_fields = fields


class ProfileSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(
        min_length=2, max_length=100, trim_whitespace=True,
        error_messages={'min_length': "Ism kamida 2 ta harf bo'lishi kerak"},
    )
    phone = serializers.CharField(
        min_length=9, max_length=20, trim_whitespace=True,
        error_messages={'min_length': "Telefon raqami kamida 9 ta raqam bo'lishi kerak"},
    )

    class Meta:
        model = User
        fields = ['id', 'email', 'full_name', 'phone', 'created_at', 'updated_at']
        read_only_fields = ['id', 'email', 'created_at', 'updated_at']


# ═══════════════════════════════════════════════════════════
#  ADMINS
# ═══════════════════════════════════════════════════════════

class AdminSerializer(serializers.ModelSerializer):
    is_blocked = serializers.BooleanField(read_only=True)
    blocked_at = serializers.SerializerMethodField()
    warehouses_count = serializers.IntegerField(source='warehouses.count', read_only=True)
    tenants_count = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'full_name', 'phone', 'is_blocked', 'blocked_at',
                  'warehouses_count', 'tenants_count', 'created_at']
        read_only_fields = ['id', 'email', 'created_at']

    def get_blocked_at(self, obj):
        try:
            return obj.admin_status.blocked_at
        except AdminStatus.DoesNotExist:
            return None

    def get_tenants_count(self, obj):
        return obj.tenants.filter(is_active=True).count()


class AdminCreateSerializer(serializers.Serializer):
    """Input for owner-created admins; validation lives in provisioning."""
    email = serializers.CharField(required=False, allow_blank=True, default='')
    password = serializers.CharField(required=False, allow_blank=True, default='',
                                     write_only=True)
    full_name = serializers.CharField(required=False, allow_blank=True, default='')
    phone = serializers.CharField(required=False, allow_blank=True, default='')


class AdminUpdateSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(min_length=2, max_length=100)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)

    class Meta:
        model = User
        fields = ['full_name', 'phone']


class OwnerSetupSerializer(serializers.Serializer):
    email = serializers.CharField(required=False, allow_blank=True, default='')
    password = serializers.CharField(required=False, allow_blank=True, default='',
                                     write_only=True)
    full_name = serializers.CharField(required=False, allow_blank=True, default='')
    secret_key = serializers.CharField(required=False, allow_blank=True, default='',
                                       write_only=True)


# ═══════════════════════════════════════════════════════════
#  WAREHOUSE
# ═══════════════════════════════════════════════════════════

class WarehouseSerializer(serializers.ModelSerializer):
    admin_name = serializers.CharField(source='admin.full_name', read_only=True)
    tenants_count = serializers.SerializerMethodField()

    class Meta:
        model = Warehouse
        fields = ['id', 'admin', 'admin_name', 'name', 'address', 'description',
                  'is_active', 'tenants_count', 'created_at', 'updated_at']
        read_only_fields = ['id', 'admin', 'created_at', 'updated_at']

    def get_tenants_count(self, obj):
        return obj.tenants.filter(is_active=True).count()


# ═══════════════════════════════════════════════════════════
#  TENANT
# ═══════════════════════════════════════════════════════════

class TenantSerializer(serializers.ModelSerializer):
    warehouse_name = serializers.CharField(source='warehouse.name', read_only=True)
    admin_name = serializers.CharField(source='admin.full_name', read_only=True)

    class Meta:
        model = Tenant
        fields = ['id', 'admin', 'admin_name', 'warehouse', 'warehouse_name',
                  'full_name', 'phone', 'product_type', 'monthly_rent',
                  'is_active', 'created_at', 'updated_at']
        read_only_fields = ['id', 'admin', 'created_at', 'updated_at']

    def validate_warehouse(self, warehouse):
        request = self.context.get('request')
        if request and warehouse.admin_id != request.user.id:
            raise serializers.ValidationError("Bu ombor sizga tegishli emas.")
        return warehouse


# ═══════════════════════════════════════════════════════════
#  PAYMENTS
# ═══════════════════════════════════════════════════════════

class PaymentSerializer(serializers.ModelSerializer):
    tenant_name = serializers.CharField(source='tenant.full_name', read_only=True)
    tenant_phone = serializers.CharField(source='tenant.phone', read_only=True)
    product_type = serializers.CharField(source='tenant.product_type', read_only=True)
    warehouse_name = serializers.CharField(source='tenant.warehouse.name', read_only=True)
    total_due = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    remaining = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    status = serializers.CharField(read_only=True)

    class Meta:
        model = Payment
        fields = ['id', 'tenant', 'tenant_name', 'tenant_phone', 'product_type',
                  'warehouse_name', 'month', 'year', 'expected_amount', 'paid_amount',
                  'carry_over_debt', 'total_due', 'remaining', 'status', 'notes',
                  'payment_date', 'created_at', 'updated_at']
        read_only_fields = fields


class PaymentRecordSerializer(serializers.Serializer):
    """Input for recording (create or update) a month's payment."""
    tenant_id = serializers.UUIDField()
    month = serializers.IntegerField(min_value=1, max_value=12)
    year = serializers.IntegerField(min_value=2000, max_value=2100)
    expected_amount = serializers.DecimalField(max_digits=14, decimal_places=2,
                                               min_value=0, required=False)
    paid_amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class AdvancePaymentSerializer(serializers.Serializer):
    tenant_id = serializers.UUIDField()
    start_month = serializers.IntegerField(min_value=1, max_value=12)
    start_year = serializers.IntegerField(min_value=2000, max_value=2100)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    months = serializers.IntegerField(min_value=1, max_value=36)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Summa noldan katta bo'lishi kerak.")
        return value


# ═══════════════════════════════════════════════════════════
#  NOTIFICATIONS
# ═══════════════════════════════════════════════════════════

class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'title', 'message', 'type', 'is_read',
                  'related_id', 'related_type', 'created_at']
        read_only_fields = ['id', 'title', 'message', 'type',
                            'related_id', 'related_type', 'created_at']
