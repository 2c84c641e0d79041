"""
Ombor — API Views
All endpoints for the warehouse rental dashboard.
"""
import logging
import uuid
from decimal import Decimal

from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import viewsets, status, generics, permissions, serializers
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from . import ledger, stats
from .exporting import export_to_excel
from .models import AdminStatus, Notification, Payment, Tenant, User, UserRole, Warehouse
from .notifications import notify_owner, notify_user
from .permissions import (
    ROUTE_ROLES, IsActiveAccount, IsAdminOrReadOnlyOwner, IsOwner, IsOwnerOrAdmin,
    redirect_for, resolve_access,
)
from .provisioning import ProvisioningError, create_admin, create_owner, owner_exists
from .serializers import (
    LoginSerializer, UserSerializer, ProfileSerializer,
    AdminSerializer, AdminCreateSerializer, AdminUpdateSerializer, OwnerSetupSerializer,
    WarehouseSerializer, TenantSerializer,
    PaymentSerializer, PaymentRecordSerializer, AdvancePaymentSerializer,
    NotificationSerializer,
)

logger = logging.getLogger(__name__)

NO_DATA_TO_EXPORT = "Eksport qilish uchun ma'lumot yo'q"
BLOCK_REASON = 'Owner tomonidan bloklandi'

STATUS_LABELS = {
    Payment.STATUS_PAID: "To'langan",
    Payment.STATUS_PARTIAL: 'Qisman',
    Payment.STATUS_UNPAID: "To'lanmagan",
}


def _active_label(is_active):
    return 'Faol' if is_active else 'Nofaol'


def _period_from_request(request):
    """(month, year) from ?month=&year=, defaulting to the current month."""
    month, year = stats.current_period(timezone.localdate())
    try:
        month = int(request.query_params.get('month', month))
        year = int(request.query_params.get('year', year))
    except (TypeError, ValueError):
        raise serializers.ValidationError({'detail': "Noto'g'ri oy yoki yil."})
    if not 1 <= month <= 12:
        raise serializers.ValidationError({'detail': "Noto'g'ri oy yoki yil."})
    return month, year


def _is_owner(user):
    return user.role == UserRole.OWNER


# ═══════════════════════════════════════════════════════════
#  AUTH
# ═══════════════════════════════════════════════════════════

class LoginView(APIView):
    """POST /api/auth/login/"""
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = serializer.validated_data['user']
        role = serializer.validated_data['role']

        refresh = RefreshToken.for_user(user)
        refresh['role'] = role

        logger.info('Login: %s (%s)', user.email, role)
        return Response({
            'access': str(refresh.access_token),
            'refresh': str(refresh),
            'user': UserSerializer(user).data,
            'role': role,
        })


class SessionView(APIView):
    """GET /api/auth/me/ — current account, role and block flag."""

    def get(self, request):
        return Response(UserSerializer(request.user).data)


class RouteCheckView(APIView):
    """GET /api/auth/route-check/?path=/dashboard/admins"""
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        path = (request.query_params.get('path') or '/dashboard').rstrip('/') or '/'
        decision = resolve_access(request.user, ROUTE_ROLES.get(path))
        return Response({
            'path': path,
            'decision': decision.value,
            'redirect': redirect_for(decision),
        })


# ═══════════════════════════════════════════════════════════
#  SETUP (one-time owner provisioning)
# ═══════════════════════════════════════════════════════════

class SetupStatusView(APIView):
    """GET /api/setup/status/"""
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def get(self, request):
        return Response({'owner_exists': owner_exists()})


class OwnerSetupView(APIView):
    """POST /api/setup/owner/"""
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = OwnerSetupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            user = create_owner(data['email'], data['password'],
                                data['full_name'], data['secret_key'])
        except ProvisioningError as exc:
            return Response({'error': exc.message}, status=exc.status)

        return Response({
            'success': True,
            'message': 'Owner created successfully',
            'user_id': str(user.id),
        }, status=status.HTTP_201_CREATED)


# ═══════════════════════════════════════════════════════════
#  PROFILE
# ═══════════════════════════════════════════════════════════

class ProfileView(generics.RetrieveUpdateAPIView):
    """GET/PATCH /api/profile/"""
    serializer_class = ProfileSerializer
    permission_classes = [IsActiveAccount]

    def get_object(self):
        return self.request.user


# ═══════════════════════════════════════════════════════════
#  ADMINS (Owner)
# ═══════════════════════════════════════════════════════════

class AdminViewSet(viewsets.ModelViewSet):
    """CRUD /api/admins/ — owner only"""
    permission_classes = [IsOwner]
    search_fields = ['full_name', 'email', 'phone']
    http_method_names = ['get', 'post', 'patch', 'put', 'head', 'options']

    def get_queryset(self):
        return (
            User.objects.filter(user_role__role=UserRole.ADMIN)
            .select_related('user_role', 'admin_status')
            .order_by('-created_at')
        )

    def get_serializer_class(self):
        if self.action == 'create':
            return AdminCreateSerializer
        if self.action in ['update', 'partial_update']:
            return AdminUpdateSerializer
        return AdminSerializer

    def create(self, request, *args, **kwargs):
        serializer = AdminCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            admin = create_admin(data['email'], data['password'],
                                 data['full_name'], data['phone'])
        except ProvisioningError as exc:
            return Response({'success': False, 'error': exc.message}, status=exc.status)

        return Response({
            'success': True,
            'message': 'Admin created successfully',
            'admin_id': str(admin.id),
            'admin': AdminSerializer(admin).data,
        }, status=status.HTTP_201_CREATED)

    def _set_blocked(self, admin, blocked):
        defaults = {
            'is_blocked': blocked,
            'blocked_at': timezone.now() if blocked else None,
            'blocked_reason': BLOCK_REASON if blocked else '',
        }
        AdminStatus.objects.update_or_create(admin=admin, defaults=defaults)
        logger.info('Admin %s %s by %s', admin.email,
                    'blocked' if blocked else 'unblocked', self.request.user.email)
        return self.get_queryset().get(pk=admin.pk)

    @action(detail=True, methods=['post'])
    def block(self, request, pk=None):
        """POST /api/admins/{id}/block/"""
        admin = self._set_blocked(self.get_object(), True)
        notify_user(
            admin, 'Hisob bloklandi',
            'Hisobingiz egasi tomonidan bloklandi.',
            type=Notification.TYPE_WARNING,
            related_id=admin.id, related_type='admin',
        )
        return Response({'detail': 'Muvaffaqiyatli bloklandi',
                         'admin': AdminSerializer(admin).data})

    @action(detail=True, methods=['post'])
    def unblock(self, request, pk=None):
        """POST /api/admins/{id}/unblock/"""
        admin = self._set_blocked(self.get_object(), False)
        notify_user(
            admin, 'Hisob blokdan chiqarildi',
            'Hisobingiz yana faol.',
            type=Notification.TYPE_SUCCESS,
            related_id=admin.id, related_type='admin',
        )
        return Response({'detail': 'Blokdan muvaffaqiyatli chiqarildi',
                         'admin': AdminSerializer(admin).data})

    @action(detail=False, methods=['get'])
    def export(self, request):
        """GET /api/admins/export/?search="""
        admins = list(self.filter_queryset(self.get_queryset()))
        if not admins:
            return Response({'detail': NO_DATA_TO_EXPORT}, status=status.HTTP_400_BAD_REQUEST)
        rows = [{
            'full_name': a.full_name,
            'email': a.email,
            'phone': a.phone or '-',
            'status': 'Bloklangan' if a.is_blocked else 'Faol',
        } for a in admins]
        return export_to_excel(rows, [
            ('full_name', 'Admin ismi'),
            ('email', 'Email'),
            ('phone', 'Telefon raqami'),
            ('status', 'Holat'),
        ], filename='adminlar', sheet_name='Adminlar')


# ═══════════════════════════════════════════════════════════
#  WAREHOUSES
# ═══════════════════════════════════════════════════════════

class AdminScopedMixin:
    """Owner reads every admin's rows (optionally ?admin_id=), an admin only their own."""
    admin_lookup = 'admin'

    def scope_queryset(self, qs):
        user = self.request.user
        if _is_owner(user):
            admin_id = self.request.query_params.get('admin_id')
            if admin_id:
                try:
                    admin_id = uuid.UUID(admin_id)
                except ValueError:
                    raise serializers.ValidationError({'admin_id': "Noto'g'ri admin identifikatori."})
                qs = qs.filter(**{f'{self.admin_lookup}_id': admin_id})
            return qs
        return qs.filter(**{self.admin_lookup: user})


class WarehouseViewSet(AdminScopedMixin, viewsets.ModelViewSet):
    """CRUD /api/warehouses/"""
    serializer_class = WarehouseSerializer
    permission_classes = [IsAdminOrReadOnlyOwner]
    search_fields = ['name', 'address', 'description']
    filterset_fields = ['is_active']

    def get_queryset(self):
        return self.scope_queryset(Warehouse.objects.select_related('admin'))

    def perform_create(self, serializer):
        warehouse = serializer.save(admin=self.request.user)
        logger.info('Warehouse created: %s by %s', warehouse.name, self.request.user.email)

    @action(detail=False, methods=['get'])
    def export(self, request):
        """GET /api/warehouses/export/"""
        warehouses = list(self.filter_queryset(self.get_queryset()))
        if not warehouses:
            return Response({'detail': NO_DATA_TO_EXPORT}, status=status.HTTP_400_BAD_REQUEST)
        rows = [{
            'name': w.name,
            'address': w.address or '-',
            'description': w.description or '-',
            'status': _active_label(w.is_active),
        } for w in warehouses]
        return export_to_excel(rows, [
            ('name', 'Ombor nomi'),
            ('address', 'Ombor manzili'),
            ('description', 'Tavsif'),
            ('status', 'Holat'),
        ], filename='omborlar', sheet_name='Omborlar')


# ═══════════════════════════════════════════════════════════
#  TENANTS (Renters)
# ═══════════════════════════════════════════════════════════

class TenantViewSet(AdminScopedMixin, viewsets.ModelViewSet):
    """CRUD /api/tenants/"""
    serializer_class = TenantSerializer
    permission_classes = [IsAdminOrReadOnlyOwner]
    search_fields = ['full_name', 'phone', 'product_type', 'warehouse__name']
    filterset_fields = ['warehouse', 'is_active', 'product_type']

    def get_queryset(self):
        return self.scope_queryset(Tenant.objects.select_related('warehouse', 'admin'))

    def perform_create(self, serializer):
        tenant = serializer.save(admin=self.request.user)
        logger.info('Tenant created: %s by %s', tenant.full_name, self.request.user.email)
        notify_owner(
            'Yangi ijarachi',
            f"{self.request.user.full_name} {tenant.warehouse.name} omboriga "
            f"{tenant.full_name} ijarachini qo'shdi.",
            related_id=str(tenant.id),
            related_type='tenant',
        )

    @action(detail=False, methods=['get'])
    def export(self, request):
        """GET /api/tenants/export/"""
        tenants = list(self.filter_queryset(self.get_queryset()))
        if not tenants:
            return Response({'detail': NO_DATA_TO_EXPORT}, status=status.HTTP_400_BAD_REQUEST)

        with_admin = _is_owner(request.user)
        rows = []
        for t in tenants:
            row = {
                'full_name': t.full_name,
                'phone': t.phone,
                'product_type': t.product_type,
                'warehouse': t.warehouse.name if t.warehouse_id else '-',
                'monthly_rent': float(t.monthly_rent),
                'status': _active_label(t.is_active),
            }
            if with_admin:
                row['admin'] = t.admin.full_name or '-'
            rows.append(row)

        columns = [
            ('full_name', 'Ijarachi ismi'),
            ('phone', 'Telefon'),
            ('product_type', 'Mahsulot turi'),
            ('warehouse', 'Ombor'),
            ('monthly_rent', 'Oylik ijara'),
        ]
        if with_admin:
            columns.append(('admin', 'Admin'))
        columns.append(('status', 'Holat'))
        return export_to_excel(rows, columns, filename='ijarachilar', sheet_name='Ijarachilar')


# ═══════════════════════════════════════════════════════════
#  PAYMENTS
# ═══════════════════════════════════════════════════════════

class PaymentViewSet(AdminScopedMixin, viewsets.ModelViewSet):
    """
    /api/payments/?month=&year=&search=

    POST records a month's payment for one tenant (created or updated in
    place). Rows are never edited or deleted through other verbs.
    """
    serializer_class = PaymentSerializer
    permission_classes = [IsAdminOrReadOnlyOwner]
    search_fields = ['tenant__full_name', 'tenant__phone', 'tenant__product_type', 'notes']
    filterset_fields = ['tenant']
    http_method_names = ['get', 'post', 'head', 'options']
    admin_lookup = 'tenant__admin'

    def get_queryset(self):
        qs = self.scope_queryset(
            Payment.objects.select_related('tenant', 'tenant__warehouse')
        )
        month = self.request.query_params.get('month', '')
        if month.isdigit():
            qs = qs.filter(month=month)
        year = self.request.query_params.get('year', '')
        if year.isdigit():
            qs = qs.filter(year=year)
        return qs

    def _own_tenant(self, tenant_id):
        return get_object_or_404(Tenant, id=tenant_id, admin=self.request.user)

    def create(self, request, *args, **kwargs):
        """POST /api/payments/"""
        serializer = PaymentRecordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        tenant = self._own_tenant(data['tenant_id'])
        expected = data.get('expected_amount')
        if expected is None:
            expected = tenant.monthly_rent

        try:
            payment, created = ledger.record_payment(
                tenant, data['month'], data['year'],
                expected_amount=expected,
                paid_amount=data['paid_amount'],
                notes=data.get('notes', ''),
            )
        except ValueError as exc:
            return Response({'detail': str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(
            PaymentSerializer(payment).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )

    @action(detail=False, methods=['post'])
    def advance(self, request):
        """POST /api/payments/advance/ — spread a lump sum over several months"""
        serializer = AdvancePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        tenant = self._own_tenant(data['tenant_id'])
        try:
            rows = ledger.record_advance_payment(
                tenant, data['start_month'], data['start_year'],
                amount=data['amount'], months=data['months'],
                notes=data.get('notes', ''),
            )
        except ValueError as exc:
            return Response({'detail': str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({
            'amount': data['amount'],
            'months': data['months'],
            'payments': PaymentSerializer(rows, many=True).data,
        }, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def summary(self, request):
        """GET /api/payments/summary/?month=&year="""
        month, year = _period_from_request(request)
        payments = list(
            self.scope_queryset(Payment.objects.all()).filter(month=month, year=year)
        )
        totals = ledger.period_summary(payments)
        return Response({
            'month': month,
            'year': year,
            'count': len(payments),
            'expected': float(totals['expected']),
            'paid': float(totals['paid']),
            'remaining': float(totals['remaining']),
        })

    @action(detail=False, methods=['get'])
    def export(self, request):
        """GET /api/payments/export/?month=&year="""
        month, year = _period_from_request(request)
        payments = list(
            self.filter_queryset(self.get_queryset()).filter(month=month, year=year)
        )
        if not payments:
            return Response({'detail': NO_DATA_TO_EXPORT}, status=status.HTTP_400_BAD_REQUEST)

        rows = [{
            'tenant_name': p.tenant.full_name,
            'tenant_phone': p.tenant.phone,
            'warehouse': p.tenant.warehouse.name,
            'expected_amount': float(p.expected_amount),
            'carry_over': float(p.carry_over_debt),
            'paid_amount': float(p.paid_amount),
            'remaining': float(max(p.remaining, Decimal('0'))),
            'status': STATUS_LABELS[p.status],
            'payment_date': timezone.localtime(p.payment_date).strftime('%Y-%m-%d')
            if p.payment_date else '-',
        } for p in payments]
        return export_to_excel(rows, [
            ('tenant_name', 'Ijarachi ismi'),
            ('tenant_phone', 'Telefon'),
            ('warehouse', 'Ombor'),
            ('expected_amount', 'Kutilgan summa'),
            ('carry_over', "O'tgan qarz"),
            ('paid_amount', "To'langan summa"),
            ('remaining', 'Qoldiq'),
            ('status', 'Holat'),
            ('payment_date', "To'lov sanasi"),
        ], filename=f'tolovlar_{year}_{month:02d}', sheet_name="To'lovlar")


# ═══════════════════════════════════════════════════════════
#  NOTIFICATIONS
# ═══════════════════════════════════════════════════════════

class NotificationViewSet(viewsets.ReadOnlyModelViewSet):
    """GET /api/notifications/ — the caller's own notifications"""
    serializer_class = NotificationSerializer
    permission_classes = [IsActiveAccount]
    filterset_fields = ['is_read', 'type']

    def get_queryset(self):
        return Notification.objects.filter(user=self.request.user)

    @action(detail=True, methods=['post'])
    def read(self, request, pk=None):
        notification = self.get_object()
        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=['is_read'])
        return Response(NotificationSerializer(notification).data)

    @action(detail=False, methods=['post'], url_path='read-all')
    def read_all(self, request):
        updated = self.get_queryset().filter(is_read=False).update(is_read=True)
        return Response({'updated': updated})

    @action(detail=False, methods=['get'], url_path='unread-count')
    def unread_count(self, request):
        return Response({'count': self.get_queryset().filter(is_read=False).count()})


# ═══════════════════════════════════════════════════════════
#  DASHBOARD & STATISTICS
# ═══════════════════════════════════════════════════════════

class DashboardView(APIView):
    """GET /api/dashboard/?month=&year="""
    permission_classes = [IsOwnerOrAdmin]

    def get(self, request):
        month, year = _period_from_request(request)
        language = request.query_params.get('lang', 'uz')
        user = request.user

        if _is_owner(user):
            return Response({
                'role': UserRole.OWNER,
                'stats': stats.owner_stats(month, year),
                'monthly_income': stats.monthly_income(year, language=language),
                'product_types': stats.product_type_stats(),
                'admin_performance': stats.admin_performance(month, year),
            })

        return Response({
            'role': UserRole.ADMIN,
            'stats': stats.admin_stats(user, month, year),
            'monthly_income': stats.monthly_income(year, admin=user, language=language),
            'product_types': stats.product_type_stats(admin=user),
        })


class StatisticsView(APIView):
    """GET /api/statistics/?month=&year=&lang="""
    permission_classes = [IsOwnerOrAdmin]

    def get(self, request):
        month, year = _period_from_request(request)
        language = request.query_params.get('lang', 'uz')
        user = request.user
        admin = None if _is_owner(user) else user

        data = {
            'month': month,
            'year': year,
            'stats': stats.owner_stats(month, year) if admin is None
            else stats.admin_stats(admin, month, year),
            'payment_summary': stats.payment_summary(month, year, admin=admin),
            'monthly_trend': stats.monthly_trend(year, admin=admin, language=language),
            'product_types': stats.product_type_stats(admin=admin),
        }
        if admin is None:
            data['admin_performance'] = stats.admin_performance(month, year)
        return Response(data)
