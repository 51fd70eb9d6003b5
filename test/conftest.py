import pytest
from ticketdesk import create_app, mongo
from ticketdesk.auth.models import new_user_document, actor_from_document, ADMIN, EMPLOYEE, CLIENT, CLIENT_USER
from ticketdesk.models import Ticket, Assignment, IN_PROGRESS
from ticketdesk.repositories import MongoTicketRepository
from ticketdesk.utils import utcnow
from config import TestingConfig
from unittest.mock import patch
import logging
import mongomock

# Desactivar la propagación de logs para evitar duplicados en la consola de pytest
logging.getLogger("werkzeug").setLevel(logging.ERROR)
logging.getLogger("flask_limiter").setLevel(logging.ERROR)

PASSWORD = "ThisIsA-Valid-Password123"


@pytest.fixture(scope="function")
def app(tmp_path, monkeypatch):
    """Crea y configura una instancia de la aplicación Flask para cada test."""
    monkeypatch.setattr(TestingConfig, "LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setattr(TestingConfig, "UPLOAD_FOLDER", str(tmp_path / "uploads"))
    # Flask-PyMongo crea su cliente con su propia referencia a MongoClient
    with patch("flask_pymongo.MongoClient", mongomock.MongoClient):
        app = create_app("testing")
        yield app


@pytest.fixture(scope="function")
def client(app):
    """Cliente de prueba simple para la aplicación Flask."""
    return app.test_client()


@pytest.fixture(scope="function")
def db(app):
    """
    Fixture que proporciona acceso a la BD y la limpia antes de cada test.
    No deja un contexto de aplicación activo: cada petición del cliente de
    prueba debe crear el suyo para que Flask-Login no reutilice el usuario.
    """
    with app.app_context():
        mongo.db.client.drop_database(mongo.db.name)
    return mongo.db


@pytest.fixture
def make_user(db):
    """Inserta un usuario y devuelve su Actor."""
    def _make_user(name, email, role, department=None, company_code=None, created_by_client=None, is_active=True):
        document = new_user_document(
            name=name,
            email=email,
            password=PASSWORD,
            role=role,
            department=department,
            company_code=company_code,
            created_by_client=created_by_client,
            created_at=utcnow(),
        )
        document["isActive"] = is_active
        result = db.users.insert_one(document)
        document["_id"] = result.inserted_id
        return actor_from_document(document)
    return _make_user


@pytest.fixture
def seeded_db(make_user):
    """
    Administrador, dos empleados de Support, uno de Billing, un cliente de ACME
    con un usuario de cliente y un cliente de OTHER.
    """
    acme = make_user("Acme Owner", "owner@acme.com", CLIENT, department="Support", company_code="ACME")
    return {
        "admin": make_user("Admin", "admin@example.com", ADMIN),
        "e1": make_user("Employee One", "e1@example.com", EMPLOYEE, department="Support"),
        "e2": make_user("Employee Two", "e2@example.com", EMPLOYEE, department="Support"),
        "billing": make_user("Billing Employee", "billing@example.com", EMPLOYEE, department="Billing"),
        "client": acme,
        "client_user": make_user(
            "Acme Staff", "staff@acme.com", CLIENT_USER,
            department="Support", company_code="ACME", created_by_client=acme.id,
        ),
        "other_client": make_user("Other Owner", "owner@other.com", CLIENT, department="Support", company_code="OTHER"),
    }


@pytest.fixture
def auth_headers(app, db):
    """Cabeceras Authorization para un actor, con un token emitido por la app de test."""
    def _auth_headers(actor):
        with app.app_context():
            token = actor.get_access_token()
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers


@pytest.fixture
def give_workload(db):
    """Crea `count` tickets activos asignados al empleado indicado."""
    def _give_workload(employee, count, status=IN_PROGRESS, company_code="LOAD"):
        tickets = MongoTicketRepository(db)
        created = []
        for _ in range(count):
            created.append(tickets.add(Ticket(
                ticket_number=tickets.next_ticket_number(),
                title="Carga",
                description="Ticket de carga",
                priority="low",
                category="other",
                department=employee.department,
                client_id="load-client",
                client_name="Load",
                company_code=company_code,
                status=status,
                assigned_employees=(Assignment(employee.id, employee.name, employee.department, utcnow(), True),),
                created_at=utcnow(),
                updated_at=utcnow(),
            )))
        return created
    return _give_workload
