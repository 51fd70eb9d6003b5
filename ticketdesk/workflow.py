# ticketdesk/workflow.py

from dataclasses import replace
import logging
from ticketdesk.models import OPEN, RESOLVED, CLOSED, TICKET_STATUSES
from ticketdesk.exceptions import InvalidTransition, RequestValidationError
from ticketdesk.utils import utcnow

logger = logging.getLogger(__name__)

# El personal puede llevar un ticket a cualquier otro estado, también saltando pasos
TRANSITIONS = {
    status: frozenset(TICKET_STATUSES) - {status}
    for status in TICKET_STATUSES
}


class TicketStateMachine:
    """
    Gobierna los cambios de estado de un ticket y las marcas de tiempo asociadas.

    Aplicar el estado actual no hace nada. resolvedAt y closedAt se fijan la
    primera vez que se entra en el estado y se conservan al reabrir.
    """

    def __init__(self, clock=utcnow, transitions=None):
        self.clock = clock
        self.transitions = transitions or TRANSITIONS

    def can_transition(self, current, target):
        return target == current or target in self.transitions.get(current, ())

    def apply(self, ticket, target, **changes):
        """
        Devuelve un ticket nuevo en el estado `target`. `changes` permite cambiar
        otros campos (p. ej. assigned_employees) en el mismo paso.
        """
        if target not in TICKET_STATUSES:
            raise RequestValidationError(
                f"Estado desconocido: '{target}'.", errors={"status": [f"Valores válidos: {', '.join(TICKET_STATUSES)}"]}
            )

        if target == ticket.status and not changes:
            return ticket

        assignments = changes.get("assigned_employees", ticket.assigned_employees)
        if target != OPEN and not assignments:
            raise InvalidTransition(ticket.status, target, "Un ticket sin empleados asignados debe permanecer abierto.")

        if target == ticket.status:
            return replace(ticket, **changes)

        if target not in self.transitions.get(ticket.status, ()):
            raise InvalidTransition(ticket.status, target)

        now = self.clock()
        if target == RESOLVED and ticket.resolved_at is None:
            changes["resolved_at"] = now
        elif target == CLOSED and ticket.closed_at is None:
            changes["closed_at"] = now

        logger.debug(f"Ticket {ticket.ticket_number}: {ticket.status} -> {target}")
        return replace(ticket, status=target, **changes)
