"""
Ombor — Data Models

Model hierarchy:
  User (custom auth, carries profile fields)
  ├── UserRole (owner / admin / user)
  ├── AdminStatus (block flag, owner-managed)
  ├── Notification (in-app alerts)
  └── Warehouse (managed by an admin)
       └── Tenant (renter, belongs to admin + warehouse)
            └── Payment (one row per tenant per month/year)
"""

import uuid
from decimal import Decimal

from django.db import models
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.core.validators import MinValueValidator, MaxValueValidator


# ═══════════════════════════════════════════════════════════
#  CUSTOM USER
# ═══════════════════════════════════════════════════════════

class UserManager(BaseUserManager):
    def create_user(self, email, full_name, password=None, **extra):
        if not email:
            raise ValueError('Email majburiy')
        user = self.model(email=self.normalize_email(email).lower(), full_name=full_name, **extra)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, full_name, password=None, **extra):
        extra.setdefault('is_staff', True)
        extra.setdefault('is_superuser', True)
        return self.create_user(email, full_name, password, **extra)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Account with its profile data (full name, phone).
    The role lives in UserRole.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True, db_index=True)
    full_name = models.CharField(max_length=100)
    phone = models.CharField(max_length=20, blank=True, default='')
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()
    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['full_name']

    class Meta:
        db_table = 'users'
        ordering = ['full_name']

    def __str__(self):
        return f'{self.full_name} <{self.email}>'

    @property
    def role(self):
        """Role name or None when the account has no role row."""
        try:
            return self.user_role.role
        except UserRole.DoesNotExist:
            return None

    @property
    def is_blocked(self):
        """Only admins can be blocked; a missing status row means active."""
        if self.role != UserRole.ADMIN:
            return False
        try:
            return self.admin_status.is_blocked
        except AdminStatus.DoesNotExist:
            return False


# ═══════════════════════════════════════════════════════════
#  USER ROLE
# ═══════════════════════════════════════════════════════════

class UserRole(models.Model):
    """
    One role per account. A single owner is expected but only
    enforced when the owner is provisioned.
    """
    OWNER = 'owner'
    ADMIN = 'admin'
    USER = 'user'
    ROLE_CHOICES = [
        (OWNER, 'Egasi'),
        (ADMIN, 'Admin'),
        (USER, 'Foydalanuvchi'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='user_role')
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'user_roles'

    def __str__(self):
        return f'{self.user.full_name} ({self.role})'


# ═══════════════════════════════════════════════════════════
#  ADMIN STATUS
# ═══════════════════════════════════════════════════════════

class AdminStatus(models.Model):
    """Block flag per admin, set by the owner."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    admin = models.OneToOneField(User, on_delete=models.CASCADE, related_name='admin_status')
    is_blocked = models.BooleanField(default=False)
    blocked_at = models.DateTimeField(null=True, blank=True)
    blocked_reason = models.CharField(max_length=300, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'admin_status'
        verbose_name_plural = 'admin statuses'

    def __str__(self):
        return f'{self.admin.full_name}: {"blocked" if self.is_blocked else "active"}'


# ═══════════════════════════════════════════════════════════
#  WAREHOUSE
# ═══════════════════════════════════════════════════════════

class Warehouse(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    admin = models.ForeignKey(User, on_delete=models.CASCADE, related_name='warehouses')
    name = models.CharField(max_length=200, db_index=True)
    address = models.CharField(max_length=300, blank=True, default='')
    description = models.TextField(blank=True, default='')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'warehouses'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['admin', 'is_active'], name='warehouses_admin_active_idx'),
        ]

    def __str__(self):
        return self.name


# ═══════════════════════════════════════════════════════════
#  TENANT (Renter)
# ═══════════════════════════════════════════════════════════

class Tenant(models.Model):
    """
    A renter occupying space in one warehouse.
    Owned by the admin who created it.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    admin = models.ForeignKey(User, on_delete=models.CASCADE, related_name='tenants')
    warehouse = models.ForeignKey(Warehouse, on_delete=models.CASCADE, related_name='tenants')
    full_name = models.CharField(max_length=200, db_index=True)
    phone = models.CharField(max_length=30)
    product_type = models.CharField(max_length=100, db_index=True,
                                    help_text='Stored goods, e.g. Oziq-ovqat, Elektronika')
    monthly_rent = models.DecimalField(max_digits=14, decimal_places=2, default=0,
                                       validators=[MinValueValidator(0)])
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'tenants'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['admin', 'is_active'], name='tenants_admin_active_idx'),
        ]

    def __str__(self):
        return self.full_name


# ═══════════════════════════════════════════════════════════
#  PAYMENT (Monthly ledger row per tenant)
# ═══════════════════════════════════════════════════════════

class Payment(models.Model):
    """
    Monthly rent ledger row.

    carry_over_debt is captured once, when the row is created, from the
    previous month's shortfall. It is not recomputed if that month changes
    later.
    """
    STATUS_PAID = 'paid'
    STATUS_PARTIAL = 'partial'
    STATUS_UNPAID = 'unpaid'
    STATUS_CHOICES = [
        (STATUS_PAID, "To'langan"),
        (STATUS_PARTIAL, 'Qisman'),
        (STATUS_UNPAID, "To'lanmagan"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='payments')
    month = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(12)])
    year = models.PositiveSmallIntegerField(db_index=True)
    expected_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0,
                                          validators=[MinValueValidator(0)])
    paid_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0,
                                      validators=[MinValueValidator(0)])
    carry_over_debt = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    notes = models.TextField(blank=True, default='')
    payment_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payments'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'month', 'year'],
                                    name='unique_payment_per_tenant_period'),
        ]
        indexes = [
            models.Index(fields=['year', 'month'], name='payments_year_month_idx'),
        ]

    def __str__(self):
        return f'{self.tenant.full_name} — {self.year}-{self.month:02d} ({self.status})'

    @property
    def total_due(self):
        return (self.expected_amount or Decimal('0')) + (self.carry_over_debt or Decimal('0'))

    @property
    def remaining(self):
        return self.total_due - (self.paid_amount or Decimal('0'))

    @property
    def status(self):
        from .ledger import payment_status
        return payment_status(self.expected_amount, self.carry_over_debt, self.paid_amount)


# ═══════════════════════════════════════════════════════════
#  NOTIFICATION
# ═══════════════════════════════════════════════════════════

class Notification(models.Model):
    TYPE_INFO = 'info'
    TYPE_SUCCESS = 'success'
    TYPE_WARNING = 'warning'
    TYPE_ERROR = 'error'
    TYPE_PAYMENT_REMINDER = 'payment_reminder'
    TYPE_CHOICES = [
        (TYPE_INFO, 'Info'),
        (TYPE_SUCCESS, 'Success'),
        (TYPE_WARNING, 'Warning'),
        (TYPE_ERROR, 'Error'),
        (TYPE_PAYMENT_REMINDER, "To'lov eslatmasi"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    title = models.CharField(max_length=255)
    message = models.TextField()
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_INFO)
    is_read = models.BooleanField(default=False)
    related_id = models.CharField(max_length=64, blank=True, default='')
    related_type = models.CharField(max_length=50, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notif_user_read_idx'),
            models.Index(fields=['user', 'type', 'created_at'], name='notif_user_type_created_idx'),
        ]

    def __str__(self):
        return f'{self.title} → {self.user.email}'
