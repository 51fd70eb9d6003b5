# ticketdesk/commands.py

from flask import current_app
from flask.cli import with_appcontext
from ticketdesk import mongo
from ticketdesk.auth.models import new_user_document, ADMIN
from ticketdesk.models import ACTIVE_STATUSES
from ticketdesk.repositories import MongoUserRepository, MongoTicketRepository, assigned_to_filter
from ticketdesk.utils import utcnow
from ticketdesk.workload import WorkloadTracker
import click
import pymongo
import secrets
import string


def create_indexes(db):
    db.users.create_index([("email", pymongo.ASCENDING)], unique=True)
    db.users.create_index([("role", pymongo.ASCENDING), ("department", pymongo.ASCENDING)])
    db.users.create_index([("companyCode", pymongo.ASCENDING), ("createdByClient", pymongo.ASCENDING)])
    db.tickets.create_index([("ticketNumber", pymongo.ASCENDING)], unique=True)
    db.tickets.create_index([("companyCode", pymongo.ASCENDING), ("clientId", pymongo.ASCENDING)])
    db.tickets.create_index([("assignedEmployees.employeeId", pymongo.ASCENDING), ("status", pymongo.ASCENDING)])
    db.comments.create_index([("ticketId", pymongo.ASCENDING), ("createdAt", pymongo.ASCENDING)])


def find_overloaded_employees(users, tracker, limit):
    """Empleados activos con más tickets activos que el límite manual."""
    employees = users.find_active_employees()
    counts = tracker.active_counts(e.id for e in employees)
    overloaded = []
    for employee in employees:
        count = counts[employee.id]
        if count > limit:
            overloaded.append((employee, count))
    return overloaded


@click.command("init-db-data")
@click.option("--admin-email", default="admin@ticketdesk.local", show_default=True,
              help="Correo del administrador inicial.")
@click.option("--admin-name", default="Administrador", show_default=True)
@with_appcontext
def init_db_data_command(admin_email, admin_name):
    """Crea los índices de MongoDB y el administrador inicial si no existe."""
    print("Iniciando carga de datos iniciales para MongoDB...")

    try:
        print("Creando índices...")
        create_indexes(mongo.db)
        print("Índices creados.")

        if mongo.db.users.count_documents({"role": ADMIN}) == 0:
            alphabet = string.ascii_letters + string.digits
            # Garantiza al menos una letra y un número
            password = secrets.choice(string.ascii_letters) + secrets.choice(string.digits) + \
                ''.join(secrets.choice(alphabet) for i in range(14))

            mongo.db.users.insert_one(new_user_document(
                name=admin_name,
                email=admin_email,
                password=password,
                role=ADMIN,
                created_at=utcnow(),
            ))
            print(f"Administrador '{admin_email}' creado con éxito.")
            print(f"  -> Contraseña para '{admin_email}': {password}")
        else:
            print("Ya existe al menos un administrador.")

        print("\nCarga de datos iniciales finalizada con éxito.")

    except pymongo.errors.PyMongoError as e:
        current_app.logger.error(f"Error de base de datos en init-db-data: {e}", exc_info=True)
        raise click.ClickException(f"Ocurrió un error de base de datos durante la inicialización: {e}")


@click.command("reconcile-workload")
@with_appcontext
def reconcile_workload_command():
    """Informa de los empleados que superan el límite de tickets activos."""
    limit = current_app.config["MANUAL_ASSIGN_WORKLOAD_LIMIT"]
    tickets = MongoTicketRepository(mongo.db)
    overloaded = find_overloaded_employees(MongoUserRepository(mongo.db), WorkloadTracker(tickets), limit)

    if not overloaded:
        print(f"Ningún empleado supera el límite de {limit} tickets activos.")
        return

    print(f"Empleados por encima del límite de {limit} tickets activos:")
    for employee, count in overloaded:
        current_app.logger.warning(f"Empleado {employee.id} con {count} tickets activos (límite {limit}).")
        query = {"status": {"$in": list(ACTIVE_STATUSES)}}
        query.update(assigned_to_filter(employee.id))
        numbers = [t.ticket_number for t in tickets.find(query)]
        print(f"  - {employee.name} ({employee.id}): {count} tickets -> {', '.join(numbers)}")
