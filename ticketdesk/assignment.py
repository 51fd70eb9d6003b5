# ticketdesk/assignment.py
"""
Motor de asignación de empleados a tickets.

Todas las operaciones reciben un Ticket y devuelven un Ticket nuevo; no escriben
en la base de datos. Solo leen la carga de trabajo a través de WorkloadTracker
justo antes de cada comprobación de capacidad.
"""

from dataclasses import replace
import logging
from ticketdesk.auth.models import EMPLOYEE
from ticketdesk.models import Assignment, OPEN, IN_PROGRESS
from ticketdesk.workflow import TicketStateMachine
from ticketdesk.exceptions import (
    AlreadyAssigned, NotAssigned, NotFound, CapacityExceeded, RequestValidationError,
)
from ticketdesk.utils import utcnow, unique_in_order

logger = logging.getLogger(__name__)

AUTO_ASSIGN_WORKLOAD_LIMIT = 3
AUTO_ASSIGN_MAX_EMPLOYEES = 2
MANUAL_ASSIGN_WORKLOAD_LIMIT = 5


def is_assignable(employee):
    return employee is not None and employee.role == EMPLOYEE and employee.is_active


class AssignmentEngine:

    def __init__(self, tracker, state_machine=None, clock=utcnow,
                 auto_limit=AUTO_ASSIGN_WORKLOAD_LIMIT,
                 auto_slots=AUTO_ASSIGN_MAX_EMPLOYEES,
                 manual_limit=MANUAL_ASSIGN_WORKLOAD_LIMIT):
        self.tracker = tracker
        self.clock = clock
        self.state_machine = state_machine or TicketStateMachine(clock=clock)
        self.auto_limit = auto_limit
        self.auto_slots = auto_slots
        self.manual_limit = manual_limit

    def _assignment(self, employee, is_primary, assigned_at=None):
        return Assignment(
            employee_id=employee.id,
            employee_name=employee.name,
            department=employee.department,
            assigned_at=assigned_at or self.clock(),
            is_primary=is_primary,
        )

    def auto_assign(self, ticket, employees):
        """
        Asigna hasta `auto_slots` empleados activos del departamento del ticket
        con menos de `auto_limit` tickets activos, ordenados por carga (a igual
        carga, en el orden recibido). El primero queda como principal.
        Si no hay nadie disponible el ticket queda abierto y sin asignar.
        """
        available = []
        for position, employee in enumerate(employees):
            if not is_assignable(employee) or employee.department != ticket.department:
                continue
            count = self.tracker.active_count(employee.id)
            if count < self.auto_limit:
                available.append((count, position, employee))
            else:
                logger.debug(f"Empleado {employee.id} descartado para auto-asignación: {count} tickets activos.")

        available.sort(key=lambda item: (item[0], item[1]))
        chosen = [employee for _, _, employee in available[:self.auto_slots]]

        if not chosen:
            logger.info(
                f"Ticket {ticket.ticket_number}: no hay empleados disponibles en el departamento "
                f"'{ticket.department}'. Queda abierto sin asignar."
            )
            return ticket

        assignments = tuple(
            self._assignment(employee, is_primary=(index == 0)) for index, employee in enumerate(chosen)
        )
        logger.info(
            f"Ticket {ticket.ticket_number} auto-asignado a {[e.id for e in chosen]} (principal: {chosen[0].id})."
        )
        return self.state_machine.apply(ticket, IN_PROGRESS, assigned_employees=assignments)

    def assign(self, ticket, employee_ids, employees_by_id):
        """
        Reemplaza todas las asignaciones del ticket por `employee_ids`, en orden;
        el primero queda como principal. Si algún empleado no existe o supera el
        límite manual, no se cambia nada.
        """
        employee_ids = unique_in_order(employee_ids)
        if not employee_ids:
            raise RequestValidationError(errors={"employeeIds": ["Debe indicar al menos un empleado."]})

        missing = [eid for eid in employee_ids if not is_assignable(employees_by_id.get(eid))]
        if missing:
            raise NotFound(f"Empleados no encontrados o inactivos: {', '.join(missing)}", missing_ids=missing)

        offenders = []
        for employee_id in employee_ids:
            count = self.tracker.active_count(employee_id)
            if count >= self.manual_limit:
                offenders.append({
                    "employeeId": employee_id,
                    "employeeName": employees_by_id[employee_id].name,
                    "activeTickets": count,
                })
        if offenders:
            raise CapacityExceeded(
                offenders, self.manual_limit,
                f"Empleados con {self.manual_limit} o más tickets activos: "
                + ", ".join(o["employeeName"] for o in offenders),
            )

        previous = {a.employee_id: a.assigned_at for a in ticket.assigned_employees}
        assignments = tuple(
            self._assignment(employees_by_id[eid], is_primary=(index == 0), assigned_at=previous.get(eid))
            for index, eid in enumerate(employee_ids)
        )
        return self.state_machine.apply(ticket, IN_PROGRESS, assigned_employees=assignments)

    def add(self, ticket, employee):
        if ticket.is_assigned(employee.id):
            raise AlreadyAssigned(f"{employee.name} ya está asignado al ticket {ticket.ticket_number}.")
        if not is_assignable(employee):
            raise NotFound(f"Empleado no encontrado o inactivo: {employee.id}", missing_ids=[employee.id])

        count = self.tracker.active_count(employee.id)
        if count >= self.manual_limit:
            raise CapacityExceeded(
                [{"employeeId": employee.id, "employeeName": employee.name, "activeTickets": count}],
                self.manual_limit,
                f"{employee.name} ya tiene {count} tickets activos.",
            )

        if not ticket.assigned_employees:
            assignments = (self._assignment(employee, is_primary=True),)
            return self.state_machine.apply(ticket, IN_PROGRESS, assigned_employees=assignments)

        return replace(ticket, assigned_employees=ticket.assigned_employees + (self._assignment(employee, is_primary=False),))

    def remove(self, ticket, employee_id):
        removed = next((a for a in ticket.assigned_employees if a.employee_id == employee_id), None)
        if removed is None:
            raise NotAssigned(f"El empleado {employee_id} no está asignado al ticket {ticket.ticket_number}.")

        remaining = tuple(a for a in ticket.assigned_employees if a.employee_id != employee_id)
        if not remaining:
            return self.state_machine.apply(ticket, OPEN, assigned_employees=())

        if removed.is_primary:
            remaining = (replace(remaining[0], is_primary=True),) + remaining[1:]
            logger.info(
                f"Ticket {ticket.ticket_number}: nuevo principal {remaining[0].employee_id} tras quitar a {employee_id}."
            )
        return replace(ticket, assigned_employees=remaining)
