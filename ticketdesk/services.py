# ticketdesk/services.py
"""
Orquestación de casos de uso. Es la única capa que habla con los repositorios:
el control de acceso, el motor de asignación y la máquina de estados solo
reciben y devuelven valores.
"""

from dataclasses import replace
import logging
from flask import current_app
from pymongo.errors import DuplicateKeyError
from ticketdesk import mongo
from ticketdesk.access import TenantContext, require_access, can_manage, allowed_roles_to_create
from ticketdesk.assignment import AssignmentEngine, MANUAL_ASSIGN_WORKLOAD_LIMIT
from ticketdesk.auth.models import (
    ADMIN, EMPLOYEE, CLIENT, CLIENT_USER, STAFF_ROLES, TENANT_ROLES, new_user_document,
)
from ticketdesk.exceptions import Forbidden, NotFound, RequestValidationError, ConcurrentModification
from ticketdesk.models import Ticket, Comment, OPEN, PRIORITIES, CATEGORIES
from ticketdesk.repositories import (
    MongoTicketRepository, MongoUserRepository, MongoCommentRepository, assigned_to_filter,
)
from ticketdesk.utils import utcnow
from ticketdesk.workflow import TicketStateMachine
from ticketdesk.workload import WorkloadTracker

logger = logging.getLogger(__name__)


def require_role(actor, roles, action):
    if actor.role not in roles:
        logger.warning(f"Usuario {actor.id} con rol '{actor.role}' intentó {action}.")
        raise Forbidden(f"Tu rol no permite {action}.")


class TicketService:

    def __init__(self, tickets, users, comments, tracker=None, state_machine=None, engine=None,
                 clock=utcnow, write_attempts=3):
        self.tickets = tickets
        self.users = users
        self.comments = comments
        self.clock = clock
        self.tracker = tracker or WorkloadTracker(tickets)
        self.state_machine = state_machine or TicketStateMachine(clock=clock)
        self.engine = engine or AssignmentEngine(self.tracker, self.state_machine, clock=clock)
        self.write_attempts = max(1, write_attempts)

    # --- Consultas ---

    def _load(self, ticket_id):
        ticket = self.tickets.find_by_id(ticket_id)
        if ticket is None:
            raise NotFound(f"Ticket {ticket_id} no encontrado.")
        return ticket

    def get_ticket(self, actor, ticket_id):
        ticket = self._load(ticket_id)
        require_access(actor, ticket)
        return ticket

    def list_all(self, actor):
        require_role(actor, STAFF_ROLES, "listar todos los tickets")
        return self.tickets.find({})

    def list_for_client(self, actor):
        require_role(actor, TENANT_ROLES, "listar sus tickets")
        return self.tickets.find(TenantContext(actor).apply({"clientId": actor.id}))

    def list_assigned(self, actor):
        require_role(actor, {EMPLOYEE}, "listar tickets asignados")
        return self.tickets.find(assigned_to_filter(actor.id))

    # --- Alta ---

    def create_ticket(self, actor, title, description, priority, category, department=None, attachments=()):
        require_role(actor, TENANT_ROLES, "crear tickets")

        department = (department or actor.department or "").strip()
        errors = {}
        if not title or not title.strip():
            errors["title"] = ["Este campo es obligatorio"]
        if not description or not description.strip():
            errors["description"] = ["Este campo es obligatorio"]
        if priority not in PRIORITIES:
            errors["priority"] = [f"Valores válidos: {', '.join(PRIORITIES)}"]
        if category not in CATEGORIES:
            errors["category"] = [f"Valores válidos: {', '.join(CATEGORIES)}"]
        if not department:
            errors["department"] = ["Este campo es obligatorio"]
        if errors:
            raise RequestValidationError(errors=errors)

        now = self.clock()
        ticket = Ticket(
            ticket_number=self.tickets.next_ticket_number(),
            title=title.strip(),
            description=description.strip(),
            priority=priority,
            category=category,
            department=department,
            client_id=actor.id,
            client_name=actor.name,
            company_code=actor.company_code,
            status=OPEN,
            attachments=tuple(attachments or ()),
            created_at=now,
            updated_at=now,
        )
        ticket = self.engine.auto_assign(ticket, self.users.find_active_employees(department))
        ticket = self.tickets.add(ticket)
        logger.info(
            f"Ticket {ticket.ticket_number} creado por {actor.id} ({actor.company_code}) "
            f"con estado '{ticket.status}' y {len(ticket.assigned_employees)} asignado(s)."
        )
        return ticket

    # --- Modificaciones ---

    def _mutate(self, actor, ticket_id, mutation, description):
        """
        Lee el ticket, comprueba el acceso, aplica `mutation` y guarda con una
        actualización condicional sobre la versión. Si otra petición guardó el
        ticket entretanto, se vuelve a leer y se repite la mutación completa.
        """
        conflict = None
        for attempt in range(1, self.write_attempts + 1):
            ticket = self.get_ticket(actor, ticket_id)
            updated = mutation(ticket)
            if updated is ticket:
                return ticket
            try:
                saved = self.tickets.save(replace(updated, updated_at=self.clock()))
            except ConcurrentModification as e:
                conflict = e
                logger.warning(
                    f"Conflicto al guardar el ticket {ticket_id} ({description}), intento {attempt}/{self.write_attempts}."
                )
                continue
            logger.info(f"Ticket {saved.ticket_number}: {description} (por {actor.id}).")
            return saved
        raise conflict

    def update_status(self, actor, ticket_id, status):
        require_role(actor, STAFF_ROLES, "cambiar el estado de un ticket")
        return self._mutate(
            actor, ticket_id, lambda ticket: self.state_machine.apply(ticket, status), f"estado -> {status}"
        )

    def assign_employees(self, actor, ticket_id, employee_ids):
        require_role(actor, {ADMIN}, "asignar empleados")
        employees = self.users.find_by_ids(employee_ids)
        return self._mutate(
            actor, ticket_id,
            lambda ticket: self.engine.assign(ticket, employee_ids, employees),
            f"asignación -> {list(employee_ids)}",
        )

    def add_employee(self, actor, ticket_id, employee_id):
        require_role(actor, {ADMIN}, "añadir empleados")

        def mutation(ticket):
            employee = self.users.find_by_id(employee_id)
            if employee is None:
                raise NotFound(f"Empleado {employee_id} no encontrado.", missing_ids=[employee_id])
            return self.engine.add(ticket, employee)

        return self._mutate(actor, ticket_id, mutation, f"empleado añadido {employee_id}")

    def remove_employee(self, actor, ticket_id, employee_id):
        require_role(actor, {ADMIN}, "quitar empleados")
        return self._mutate(
            actor, ticket_id, lambda ticket: self.engine.remove(ticket, employee_id), f"empleado quitado {employee_id}"
        )

    # --- Comentarios ---

    def add_comment(self, actor, ticket_id, content, attachments=()):
        ticket = self.get_ticket(actor, ticket_id)
        if not content or not content.strip():
            raise RequestValidationError(errors={"content": ["El comentario no puede estar vacío."]})
        comment = Comment(
            ticket_id=ticket.id,
            author_id=actor.id,
            author_name=actor.name,
            author_role=actor.role,
            content=content.strip(),
            company_code=ticket.company_code,
            attachments=tuple(attachments or ()),
            created_at=self.clock(),
        )
        comment = self.comments.add(comment)
        logger.info(f"Comentario {comment.id} añadido al ticket {ticket.ticket_number} por {actor.id}.")
        return comment

    def list_comments(self, actor, ticket_id):
        ticket = self.get_ticket(actor, ticket_id)
        return self.comments.find_by_ticket_id(ticket.id, TenantContext(actor).scope())


class UserService:

    def __init__(self, users, tracker=None, clock=utcnow, manual_limit=MANUAL_ASSIGN_WORKLOAD_LIMIT):
        self.users = users
        self.tracker = tracker
        self.clock = clock
        self.manual_limit = manual_limit

    def authenticate(self, email, password):
        actor = self.users.find_by_email(email)
        if actor is None or not actor.check_password(password):
            logger.warning(f"Intento de inicio de sesión fallido para '{email}'")
            return None
        if not actor.is_active:
            logger.warning(f"Intento de inicio de sesión de un usuario desactivado: {actor.id}")
            return None
        return actor

    def create_user(self, actor, name, email, password, role, department=None, company_code=None):
        if role not in allowed_roles_to_create(actor):
            logger.warning(f"Usuario {actor.id} ({actor.role}) intentó crear un usuario con rol '{role}'.")
            raise Forbidden(f"No puedes crear usuarios con rol '{role}'.")

        if self.users.find_by_email(email):
            raise RequestValidationError(errors={"email": ["Este correo electrónico ya está registrado."]})

        created_by_client = None
        if role == CLIENT:
            if not company_code:
                raise RequestValidationError(errors={"companyCode": ["El código de empresa es obligatorio para clientes."]})
        elif role == CLIENT_USER:
            if company_code and company_code != actor.company_code:
                raise Forbidden("No puedes crear usuarios para otra empresa.")
            company_code = actor.company_code
            created_by_client = actor.id
        elif company_code:
            raise RequestValidationError(errors={"companyCode": ["El personal interno no pertenece a ninguna empresa."]})

        document = new_user_document(
            name=name,
            email=email,
            password=password,
            role=role,
            department=department,
            company_code=company_code,
            created_by_client=created_by_client,
            created_at=self.clock(),
        )
        try:
            created = self.users.add(document)
        except DuplicateKeyError:
            raise RequestValidationError(errors={"email": ["Este correo electrónico ya está registrado."]})
        logger.info(f"Usuario {created.id} ({role}) creado por {actor.id}.")
        return created

    def list_by_role(self, actor, role):
        require_role(actor, {ADMIN}, "listar usuarios")
        return self.users.find({"role": role})

    def list_client_users(self, actor):
        require_role(actor, {CLIENT}, "listar usuarios de cliente")
        return self.users.find(TenantContext(actor).apply({"role": CLIENT_USER, "createdByClient": actor.id}))

    def set_active(self, actor, target_id, is_active):
        target = self.users.find_by_id(target_id)
        if target is None:
            raise NotFound(f"Usuario {target_id} no encontrado.")
        if not can_manage(actor, target):
            logger.warning(f"Usuario {actor.id} intentó gestionar al usuario {target_id} sin permiso.")
            raise Forbidden("No tienes permiso para gestionar este usuario.")
        if target.id == actor.id:
            raise RequestValidationError(errors={"id": ["No puedes cambiar el estado de tu propia cuenta."]})
        updated = self.users.set_active(target.id, is_active)
        logger.info(f"Usuario {target.id} {'reactivado' if is_active else 'desactivado'} por {actor.id}.")
        return updated

    def employee_workloads(self, actor):
        require_role(actor, {ADMIN}, "consultar la carga de trabajo")
        employees = self.users.find({"role": EMPLOYEE})
        counts = self.tracker.active_counts(e.id for e in employees)
        workloads = []
        for employee in employees:
            count = counts[employee.id]
            data = employee.to_json()
            data["activeTickets"] = count
            data["available"] = employee.is_active and count < self.manual_limit
            workloads.append(data)
        return workloads


# --- Construcción por petición: nada se comparte entre peticiones salvo el pool de conexiones ---

def get_ticket_service():
    config = current_app.config
    tickets = MongoTicketRepository(mongo.db)
    tracker = WorkloadTracker(tickets)
    state_machine = TicketStateMachine()
    engine = AssignmentEngine(
        tracker,
        state_machine,
        auto_limit=config["AUTO_ASSIGN_WORKLOAD_LIMIT"],
        auto_slots=config["AUTO_ASSIGN_MAX_EMPLOYEES"],
        manual_limit=config["MANUAL_ASSIGN_WORKLOAD_LIMIT"],
    )
    return TicketService(
        tickets,
        MongoUserRepository(mongo.db),
        MongoCommentRepository(mongo.db),
        tracker=tracker,
        state_machine=state_machine,
        engine=engine,
        write_attempts=config["TICKET_WRITE_ATTEMPTS"],
    )


def get_user_service():
    return UserService(
        MongoUserRepository(mongo.db),
        tracker=WorkloadTracker(MongoTicketRepository(mongo.db)),
        manual_limit=current_app.config["MANUAL_ASSIGN_WORKLOAD_LIMIT"],
    )
