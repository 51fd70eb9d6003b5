# ticketdesk/auth/decorators.py

from functools import wraps
from flask_login import current_user, login_required
import logging
from ticketdesk.auth.models import ADMIN, EMPLOYEE, CLIENT, CLIENT_USER
from ticketdesk.exceptions import Forbidden

logger = logging.getLogger(__name__)


# Decorador general para requerir uno o varios roles
def role_required(roles):
    """
    Decorador que verifica si el usuario actual tiene alguno de los roles especificados.

    Uso:
    @role_required('admin')
    @role_required(['admin', 'employee'])
    """

    def decorator(f):
        @wraps(f)
        @login_required  # Asegura que el usuario esté autenticado antes de comprobar el rol
        def decorated_function(*args, **kwargs):
            # Convertir 'roles' a una lista si se pasó un solo rol como cadena
            if isinstance(roles, str):
                allowed_roles = [roles]
            else:
                allowed_roles = roles

            if current_user.role not in allowed_roles:
                logger.warning(
                    f"Acceso denegado a {f.__name__} para el usuario {current_user.id} con rol '{current_user.role}'."
                )
                raise Forbidden(f'Tu rol "{current_user.role}" no tiene acceso a este recurso.')
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def admin_required(f):
    """Solo permite acceso a usuarios con el rol 'admin'."""
    return role_required(ADMIN)(f)


def employee_required(f):
    """Solo permite acceso a usuarios con el rol 'employee'."""
    return role_required(EMPLOYEE)(f)


def client_required(f):
    """Solo permite acceso a usuarios con el rol 'client'."""
    return role_required(CLIENT)(f)


def staff_required(f):
    """Permite acceso a 'admin' o 'employee'."""
    return role_required([ADMIN, EMPLOYEE])(f)


def tenant_required(f):
    """Permite acceso a 'client' o 'client_user'."""
    return role_required([CLIENT, CLIENT_USER])(f)


def admin_or_client_required(f):
    """Roles que pueden dar de alta o gestionar otros usuarios."""
    return role_required([ADMIN, CLIENT])(f)
