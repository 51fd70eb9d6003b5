# ticketdesk/models.py
"""
Tipos de valor del dominio. Son inmutables: cada cambio produce un valor nuevo
(dataclasses.replace) y el orquestador es el único que persiste el resultado.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Tuple
from ticketdesk.utils import as_utc, isoformat

OPEN = "open"
IN_PROGRESS = "in_progress"
RESOLVED = "resolved"
CLOSED = "closed"

TICKET_STATUSES = (OPEN, IN_PROGRESS, RESOLVED, CLOSED)
# Tickets que cuentan para la carga de trabajo de un empleado
ACTIVE_STATUSES = (OPEN, IN_PROGRESS)

PRIORITIES = ("low", "medium", "high")
CATEGORIES = ("hardware", "software", "network", "other")


@dataclass(frozen=True)
class Assignment:
    employee_id: str
    employee_name: str
    department: Optional[str]
    assigned_at: datetime
    is_primary: bool = False

    def to_document(self):
        return {
            "employeeId": self.employee_id,
            "employeeName": self.employee_name,
            "department": self.department,
            "assignedAt": self.assigned_at,
            "isPrimary": self.is_primary,
        }

    @classmethod
    def from_document(cls, document):
        return cls(
            employee_id=str(document["employeeId"]),
            employee_name=document.get("employeeName", ""),
            department=document.get("department"),
            assigned_at=as_utc(document.get("assignedAt")),
            is_primary=bool(document.get("isPrimary", False)),
        )

    def to_json(self):
        return {
            "employeeId": self.employee_id,
            "employeeName": self.employee_name,
            "department": self.department,
            "assignedAt": isoformat(self.assigned_at),
            "isPrimary": self.is_primary,
        }


def check_assignment_invariants(status, assignments):
    """
    Exactamente un principal si hay asignaciones, ninguno si no hay;
    sin empleados repetidos; sin asignaciones el ticket solo puede estar abierto.
    """
    primaries = sum(1 for a in assignments if a.is_primary)
    if assignments and primaries != 1:
        raise ValueError(f"Un ticket asignado debe tener exactamente un principal (tiene {primaries}).")
    if not assignments and primaries:
        raise ValueError("Un ticket sin asignaciones no puede tener principal.")
    employee_ids = [a.employee_id for a in assignments]
    if len(employee_ids) != len(set(employee_ids)):
        raise ValueError("Un empleado aparece más de una vez en las asignaciones.")
    if not assignments and status != OPEN:
        raise ValueError(f"Un ticket sin asignaciones debe estar '{OPEN}', no '{status}'.")


def normalise_assignments(assignments):
    """
    Deja un único principal (el marcado primero o, si no hay, el primero de la
    lista) y quita empleados repetidos. Solo se usa al leer documentos guardados.
    """
    unique = []
    seen = set()
    for assignment in assignments:
        if assignment.employee_id not in seen:
            seen.add(assignment.employee_id)
            unique.append(assignment)
    primary_index = next((i for i, a in enumerate(unique) if a.is_primary), 0)
    return tuple(replace(a, is_primary=(i == primary_index)) for i, a in enumerate(unique))


@dataclass(frozen=True)
class Ticket:
    ticket_number: str
    title: str
    description: str
    priority: str
    category: str
    department: str
    client_id: str
    client_name: Optional[str]
    company_code: Optional[str]
    status: str = OPEN
    assigned_employees: Tuple[Assignment, ...] = ()
    attachments: Tuple[str, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    id: Optional[str] = None
    version: int = field(default=0, compare=False)

    def check_invariants(self):
        check_assignment_invariants(self.status, self.assigned_employees)

    @property
    def primary(self):
        for assignment in self.assigned_employees:
            if assignment.is_primary:
                return assignment
        return None

    @property
    def employee_ids(self):
        return [a.employee_id for a in self.assigned_employees]

    def is_assigned(self, employee_id):
        return employee_id in self.employee_ids

    def to_document(self):
        primary = self.primary
        return {
            "ticketNumber": self.ticket_number,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "category": self.category,
            "department": self.department,
            "status": self.status,
            "clientId": self.client_id,
            "clientName": self.client_name,
            "companyCode": self.company_code,
            "assignedEmployees": [a.to_document() for a in self.assigned_employees],
            # Campos del asignado único para consumidores antiguos: siempre reflejan al principal
            "assignedTo": primary.employee_id if primary else None,
            "assignedToName": primary.employee_name if primary else None,
            "attachments": list(self.attachments),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "resolvedAt": self.resolved_at,
            "closedAt": self.closed_at,
            "version": self.version,
        }

    @classmethod
    def from_document(cls, document):
        assignments = tuple(Assignment.from_document(a) for a in document.get("assignedEmployees") or [])
        if not assignments and document.get("assignedTo"):
            # Documento antiguo con un único asignado
            assignments = (Assignment(
                employee_id=str(document["assignedTo"]),
                employee_name=document.get("assignedToName") or "",
                department=document.get("department"),
                assigned_at=as_utc(document.get("updatedAt") or document.get("createdAt")),
                is_primary=True,
            ),)
        assignments = normalise_assignments(assignments)
        return cls(
            id=str(document["_id"]),
            ticket_number=document.get("ticketNumber", ""),
            title=document.get("title", ""),
            description=document.get("description", ""),
            priority=document.get("priority"),
            category=document.get("category"),
            department=document.get("department"),
            status=document.get("status", OPEN),
            client_id=str(document.get("clientId")),
            client_name=document.get("clientName"),
            company_code=document.get("companyCode"),
            assigned_employees=assignments,
            attachments=tuple(document.get("attachments") or ()),
            created_at=as_utc(document.get("createdAt")),
            updated_at=as_utc(document.get("updatedAt")),
            resolved_at=as_utc(document.get("resolvedAt")),
            closed_at=as_utc(document.get("closedAt")),
            version=document.get("version") or 0,
        )

    def to_json(self):
        primary = self.primary
        return {
            "id": self.id,
            "ticketNumber": self.ticket_number,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "category": self.category,
            "department": self.department,
            "status": self.status,
            "clientId": self.client_id,
            "clientName": self.client_name,
            "companyCode": self.company_code,
            "assignedEmployees": [a.to_json() for a in self.assigned_employees],
            "assignedTo": primary.employee_id if primary else None,
            "assignedToName": primary.employee_name if primary else None,
            "attachments": list(self.attachments),
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
            "resolvedAt": isoformat(self.resolved_at),
            "closedAt": isoformat(self.closed_at),
        }


@dataclass(frozen=True)
class Comment:
    """Comentario de un ticket. Solo se añaden, nunca se editan ni se borran."""
    ticket_id: str
    author_id: str
    author_name: Optional[str]
    author_role: str
    content: str
    company_code: Optional[str] = None
    attachments: Tuple[str, ...] = ()
    created_at: Optional[datetime] = None
    id: Optional[str] = None

    def to_document(self):
        return {
            "ticketId": self.ticket_id,
            "authorId": self.author_id,
            "authorName": self.author_name,
            "authorRole": self.author_role,
            "companyCode": self.company_code,
            "content": self.content,
            "attachments": list(self.attachments),
            "createdAt": self.created_at,
        }

    @classmethod
    def from_document(cls, document):
        return cls(
            id=str(document["_id"]),
            ticket_id=document["ticketId"],
            author_id=document["authorId"],
            author_name=document.get("authorName"),
            author_role=document.get("authorRole"),
            company_code=document.get("companyCode"),
            content=document.get("content", ""),
            attachments=tuple(document.get("attachments") or ()),
            created_at=as_utc(document.get("createdAt")),
        )

    def to_json(self):
        return {
            "id": self.id,
            "ticketId": self.ticket_id,
            "authorId": self.author_id,
            "authorName": self.author_name,
            "authorRole": self.author_role,
            "content": self.content,
            "attachments": list(self.attachments),
            "createdAt": isoformat(self.created_at),
        }
