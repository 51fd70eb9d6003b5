# ticketdesk/access.py
"""
Control de acceso y aislamiento entre empresas.

Las funciones de este módulo son predicados puros: no consultan la base de datos
ni guardan estado, por lo que se evalúan de nuevo en cada petición.
"""

import logging
from ticketdesk.auth.models import (
    Staff, Tenant, ADMIN, EMPLOYEE, CLIENT, CLIENT_USER, STAFF_ROLES,
)
from ticketdesk.exceptions import Forbidden

logger = logging.getLogger(__name__)


class TenantContext:
    """Regla de filtrado que se aplica a toda consulta hecha en nombre de un actor."""

    def __init__(self, actor):
        self.actor = actor

    @property
    def is_scoped(self):
        return isinstance(self.actor, Tenant)

    def scope(self):
        if isinstance(self.actor, Staff) and self.actor.role in STAFF_ROLES:
            return {}
        if isinstance(self.actor, Tenant):
            return {"companyCode": self.actor.company_code}
        raise Forbidden("Actor sin contexto de empresa válido.")

    def apply(self, query):
        scoped = dict(query)
        scoped.update(self.scope())
        return scoped


def can_access(actor, ticket):
    if isinstance(actor, Staff):
        return actor.role in (ADMIN, EMPLOYEE)
    if isinstance(actor, Tenant) and actor.role in (CLIENT, CLIENT_USER):
        return bool(ticket.company_code) and ticket.company_code == actor.company_code
    return False


def require_access(actor, ticket):
    if not can_access(actor, ticket):
        logger.warning(
            f"Acceso denegado al ticket {ticket.id} para el usuario {getattr(actor, 'id', None)}."
        )
        raise Forbidden("No tienes permiso para acceder a este ticket.")


def can_manage(actor, target):
    if isinstance(actor, Staff) and actor.role == ADMIN:
        return True
    if isinstance(actor, Tenant) and actor.role == CLIENT:
        return (
            isinstance(target, Tenant)
            and target.role == CLIENT_USER
            and target.company_code == actor.company_code
            and target.created_by_client == actor.id
        )
    return False


def allowed_roles_to_create(actor):
    """Conjunto vacío significa que el actor no puede dar de alta usuarios."""
    if isinstance(actor, Staff) and actor.role == ADMIN:
        return frozenset({EMPLOYEE, CLIENT})
    if isinstance(actor, Tenant) and actor.role == CLIENT:
        return frozenset({CLIENT_USER})
    return frozenset()
