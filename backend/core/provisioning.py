"""
Ombor — Account provisioning
One-time owner setup and owner-driven admin creation.
"""
import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import IntegrityError, transaction

from .models import AdminStatus, User, UserRole

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class ProvisioningError(Exception):
    """Raised when an account cannot be provisioned. ``status`` is the HTTP code to answer with."""

    def __init__(self, message, status=400):
        super().__init__(message)
        self.message = message
        self.status = status


def owner_exists():
    return UserRole.objects.filter(role=UserRole.OWNER).exists()


def _check_email(email):
    try:
        validate_email(email)
    except ValidationError:
        raise ProvisioningError('Invalid email address')
    if User.objects.filter(email__iexact=email).exists():
        raise ProvisioningError('A user with this email already exists')


def create_owner(email, password, full_name, secret_key):
    expected = settings.OWNER_SECRET_KEY
    if not expected or secret_key != expected:
        logger.warning('Owner setup rejected: invalid secret key')
        raise ProvisioningError('Unauthorized: Invalid secret key', status=401)
    if owner_exists():
        raise ProvisioningError('Owner already exists')
    if not email or not password or not full_name:
        raise ProvisioningError('All fields are required: email, password, full_name')
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ProvisioningError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    _check_email(email)

    with transaction.atomic():
        user = User.objects.create_user(email=email, full_name=full_name, password=password)
        UserRole.objects.create(user=user, role=UserRole.OWNER)

    logger.info('Owner created: %s', user.email)
    return user


def create_admin(email, password, full_name, phone):
    """
    Create an admin account with its role and an unblocked status row.

    The user, role and status are written in one transaction; if assigning
    the role fails the user is not kept.
    """
    if not email or not password or not full_name or not phone:
        raise ProvisioningError('All fields are required: email, password, full_name, phone')
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ProvisioningError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    _check_email(email)

    try:
        with transaction.atomic():
            user = User.objects.create_user(
                email=email, full_name=full_name, password=password, phone=phone,
            )
            assign_role(user, UserRole.ADMIN)
            AdminStatus.objects.create(admin=user, is_blocked=False)
    except IntegrityError as exc:
        logger.error('Admin creation rolled back for %s: %s', email, exc)
        raise ProvisioningError(f'Failed to assign admin role: {exc}')

    logger.info('Admin created: %s', user.email)
    return user


def assign_role(user, role):
    return UserRole.objects.create(user=user, role=role)
