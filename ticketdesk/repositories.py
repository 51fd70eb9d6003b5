from dataclasses import replace
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from ticketdesk.auth.models import actor_from_document, EMPLOYEE
from ticketdesk.models import Ticket, Comment, ACTIVE_STATUSES
from ticketdesk.exceptions import ConcurrentModification
from ticketdesk.utils import to_object_id

# -----------------------------------------------
# INTERFACES DE REPOSITORIO
# -----------------------------------------------

class UserRepository:
    """Define el contrato para operaciones de datos de usuario."""
    def find_by_id(self, user_id):
        raise NotImplementedError

    def find_by_ids(self, user_ids):
        raise NotImplementedError

    def find_by_email(self, email):
        raise NotImplementedError

    def find(self, query):
        raise NotImplementedError

    def find_active_employees(self, department=None):
        raise NotImplementedError

    def add(self, document):
        raise NotImplementedError

    def set_active(self, user_id, is_active):
        raise NotImplementedError


class TicketRepository:
    """Define el contrato para operaciones de datos de tickets."""
    def add(self, ticket):
        raise NotImplementedError

    def find_by_id(self, ticket_id):
        raise NotImplementedError

    def find(self, query):
        raise NotImplementedError

    def save(self, ticket):
        raise NotImplementedError

    def count_active_for_employee(self, employee_id):
        raise NotImplementedError

    def count_active_for_employees(self, employee_ids):
        raise NotImplementedError

    def next_ticket_number(self):
        raise NotImplementedError


class CommentRepository:
    """Define el contrato para operaciones de datos de comentarios."""
    def add(self, comment):
        raise NotImplementedError

    def find_by_ticket_id(self, ticket_id, query=None):
        raise NotImplementedError

# -----------------------------------------------
# IMPLEMENTACIONES MONGODB
# -----------------------------------------------

def assigned_to_filter(employee_id):
    """Tickets donde el empleado figura entre los asignados o como asignado único antiguo."""
    return {"$or": [{"assignedEmployees.employeeId": employee_id}, {"assignedTo": employee_id}]}


class MongoUserRepository(UserRepository):
    """Implementación concreta del repositorio de usuarios para PyMongo."""
    def __init__(self, db):
        self.collection = db.users

    def find_by_id(self, user_id):
        object_id = to_object_id(user_id)
        if object_id is None:
            return None
        document = self.collection.find_one({"_id": object_id})
        return actor_from_document(document) if document else None

    def find_by_ids(self, user_ids):
        object_ids = [oid for oid in (to_object_id(uid) for uid in user_ids) if oid is not None]
        if not object_ids:
            return {}
        return {
            str(document["_id"]): actor_from_document(document)
            for document in self.collection.find({"_id": {"$in": object_ids}})
        }

    def find_by_email(self, email):
        document = self.collection.find_one({"email": email.strip().lower()})
        return actor_from_document(document) if document else None

    def find(self, query):
        return [actor_from_document(d) for d in self.collection.find(query).sort("createdAt", ASCENDING)]

    def find_active_employees(self, department=None):
        query = {"role": EMPLOYEE, "isActive": True}
        if department is not None:
            query["department"] = department
        # El orden de alta es el desempate estable de la auto-asignación
        return [actor_from_document(d) for d in self.collection.find(query).sort("_id", ASCENDING)]

    def add(self, document):
        result = self.collection.insert_one(dict(document))
        return self.find_by_id(result.inserted_id)

    def set_active(self, user_id, is_active):
        self.collection.update_one({"_id": to_object_id(user_id)}, {"$set": {"isActive": is_active}})
        return self.find_by_id(user_id)


class MongoTicketRepository(TicketRepository):
    """
    Implementación concreta del repositorio de tickets para PyMongo.

    save() es una actualización condicional sobre el campo `version`: si otro
    proceso guardó el ticket después de leerlo, no se escribe nada y se lanza
    ConcurrentModification.

    add() y save() comprueban las invariantes de asignación antes de escribir.
    """
    def __init__(self, db):
        self.collection = db.tickets
        self.counters = db.counters

    def add(self, ticket):
        ticket.check_invariants()
        document = ticket.to_document()
        document["version"] = 0
        result = self.collection.insert_one(document)
        return replace(ticket, id=str(result.inserted_id), version=0)

    def find_by_id(self, ticket_id):
        object_id = to_object_id(ticket_id)
        if object_id is None:
            return None
        document = self.collection.find_one({"_id": object_id})
        return Ticket.from_document(document) if document else None

    def find(self, query):
        return [Ticket.from_document(d) for d in self.collection.find(query).sort("createdAt", DESCENDING)]

    def save(self, ticket):
        ticket.check_invariants()
        document = ticket.to_document()
        document.pop("version", None)
        # Los documentos anteriores al control de versiones no tienen el campo
        expected = ticket.version if ticket.version else {"$in": [0, None]}
        result = self.collection.update_one(
            {"_id": to_object_id(ticket.id), "version": expected},
            {"$set": document, "$inc": {"version": 1}},
        )
        if result.matched_count == 0:
            raise ConcurrentModification()
        return replace(ticket, version=ticket.version + 1)

    def count_active_for_employee(self, employee_id):
        query = {"status": {"$in": list(ACTIVE_STATUSES)}}
        query.update(assigned_to_filter(employee_id))
        return self.collection.count_documents(query)

    def count_active_for_employees(self, employee_ids):
        """Cuenta en una sola consulta; los empleados sin tickets activos aparecen con 0."""
        counts = dict.fromkeys(employee_ids, 0)
        if not counts:
            return counts
        query = {
            "status": {"$in": list(ACTIVE_STATUSES)},
            "$or": [
                {"assignedEmployees.employeeId": {"$in": list(counts)}},
                {"assignedTo": {"$in": list(counts)}},
            ],
        }
        for document in self.collection.find(query, {"assignedEmployees": 1, "assignedTo": 1}):
            assigned = {a.get("employeeId") for a in document.get("assignedEmployees") or []}
            if document.get("assignedTo"):
                assigned.add(document["assignedTo"])
            for employee_id in assigned & counts.keys():
                counts[employee_id] += 1
        return counts

    def next_ticket_number(self):
        counter = self.counters.find_one_and_update(
            {"_id": "ticketNumber"},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return f"TKT-{counter['seq']:05d}"


class MongoCommentRepository(CommentRepository):
    """Implementación concreta del repositorio de comentarios para PyMongo."""
    def __init__(self, db):
        self.collection = db.comments

    def add(self, comment):
        result = self.collection.insert_one(comment.to_document())
        return replace(comment, id=str(result.inserted_id))

    def find_by_ticket_id(self, ticket_id, query=None):
        criteria = dict(query or {})
        criteria["ticketId"] = ticket_id
        return [Comment.from_document(d) for d in self.collection.find(criteria).sort("createdAt", ASCENDING)]
