# ticketdesk/auth/models.py

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin
from itsdangerous import URLSafeTimedSerializer as TimedSerializer, BadSignature, SignatureExpired
from flask import current_app
from ticketdesk.utils import as_utc, isoformat

ADMIN = "admin"
EMPLOYEE = "employee"
CLIENT = "client"
CLIENT_USER = "client_user"

STAFF_ROLES = frozenset({ADMIN, EMPLOYEE})
TENANT_ROLES = frozenset({CLIENT, CLIENT_USER})
ROLES = STAFF_ROLES | TENANT_ROLES

ACCESS_TOKEN_SALT = "ticketdesk-access-token"


@dataclass(frozen=True)
class Actor(UserMixin):
    """
    Usuario autenticado. No se instancia directamente: cada registro es un
    `Staff` (admin, employee) o un `Tenant` (client, client_user).
    """
    id: str
    name: str
    email: str
    role: str
    department: Optional[str] = None
    is_active: bool = True
    password_hash: Optional[str] = field(default=None, repr=False)
    created_at: Optional[datetime] = None

    def check_password(self, password):
        if self.password_hash:
            return check_password_hash(self.password_hash, password)
        return False

    def get_access_token(self):
        s = TimedSerializer(current_app.config["SECRET_KEY"], salt=ACCESS_TOKEN_SALT)
        return s.dumps({"id": self.id, "role": self.role})

    # get_id es requerido por Flask-Login
    def get_id(self):
        return self.id

    def to_json(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "department": self.department,
            "isActive": self.is_active,
            "createdAt": isoformat(self.created_at),
        }


@dataclass(frozen=True)
class Staff(Actor):
    """Administradores y empleados: no pertenecen a ninguna empresa."""

    def __post_init__(self):
        if self.role not in STAFF_ROLES:
            raise ValueError(f"Rol '{self.role}' no válido para personal interno.")

    def __repr__(self):
        return f"<Staff {self.name} ({self.role})>"


@dataclass(frozen=True)
class Tenant(Actor):
    """Clientes y usuarios de cliente: siempre asociados a un companyCode."""
    company_code: str = ""
    created_by_client: Optional[str] = None

    def __post_init__(self):
        if self.role not in TENANT_ROLES:
            raise ValueError(f"Rol '{self.role}' no válido para un cliente.")
        if not self.company_code:
            raise ValueError(f"El usuario {self.id} con rol '{self.role}' no tiene companyCode.")
        if self.role == CLIENT and self.created_by_client:
            raise ValueError("Solo un client_user puede tener createdByClient.")

    def to_json(self):
        data = super().to_json()
        data["companyCode"] = self.company_code
        if self.created_by_client:
            data["createdByClient"] = self.created_by_client
        return data

    def __repr__(self):
        return f"<Tenant {self.name} ({self.role}, {self.company_code})>"


def actor_from_document(document):
    """
    Construye la variante adecuada a partir de un documento de la colección `users`.
    Lanza ValueError si el rol y la presencia de companyCode no son coherentes.
    """
    role = document.get("role")
    common = dict(
        id=str(document["_id"]),
        name=document.get("name", ""),
        email=document.get("email", ""),
        role=role,
        department=document.get("department"),
        is_active=document.get("isActive", True),
        password_hash=document.get("passwordHash"),
        created_at=as_utc(document.get("createdAt")),
    )
    if role in STAFF_ROLES:
        if document.get("companyCode"):
            raise ValueError(f"El usuario {common['id']} con rol '{role}' no puede tener companyCode.")
        return Staff(**common)
    if role in TENANT_ROLES:
        return Tenant(
            company_code=document.get("companyCode") or "",
            created_by_client=document.get("createdByClient"),
            **common,
        )
    raise ValueError(f"Rol desconocido: {role!r}")


def new_user_document(name, email, password, role, department=None, company_code=None,
                      created_by_client=None, created_at=None):
    """Documento listo para insertar en `users`, con la contraseña hasheada."""
    document = {
        "name": name,
        "email": email.strip().lower(),
        "passwordHash": generate_password_hash(password),
        "role": role,
        "department": department or None,
        "isActive": True,
        "createdAt": created_at,
    }
    if company_code:
        document["companyCode"] = company_code
    if created_by_client:
        document["createdByClient"] = created_by_client
    return document


def verify_access_token(token, max_age=None):
    """
    Verifica un token emitido por Actor.get_access_token().
    Devuelve {"id": ..., "role": ...} o None si el token es inválido o expiró.
    """
    if max_age is None:
        max_age = current_app.config.get("ACCESS_TOKEN_MAX_AGE")
    s = TimedSerializer(current_app.config["SECRET_KEY"], salt=ACCESS_TOKEN_SALT)
    try:
        data = s.loads(token, max_age=max_age)
    except SignatureExpired:
        current_app.logger.info("Token de acceso expirado.")
        return None
    except BadSignature:
        return None
    if not isinstance(data, dict) or not data.get("id") or data.get("role") not in ROLES:
        return None
    return {"id": data["id"], "role": data["role"]}
