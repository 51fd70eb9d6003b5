from dataclasses import replace
from datetime import datetime, timezone, timedelta
import pytest
from bson.objectid import ObjectId
from ticketdesk.models import Ticket, Comment, OPEN, IN_PROGRESS, RESOLVED
from ticketdesk.repositories import MongoTicketRepository, MongoUserRepository, MongoCommentRepository
from ticketdesk.exceptions import ConcurrentModification
from ticketdesk.utils import utcnow

T0 = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


def open_ticket(tickets, company_code="ACME", client_id="c1"):
    return tickets.add(Ticket(
        ticket_number=tickets.next_ticket_number(), title="Impresora", description="No imprime",
        priority="medium", category="hardware", department="Support", client_id=client_id,
        client_name="Acme Owner", company_code=company_code, created_at=utcnow(), updated_at=utcnow(),
    ))


def test_ticket_numbers_are_sequential(db):
    tickets = MongoTicketRepository(db)
    assert tickets.next_ticket_number() == "TKT-00001"
    assert tickets.next_ticket_number() == "TKT-00002"


def test_add_and_find_ticket(db):
    tickets = MongoTicketRepository(db)
    ticket = open_ticket(tickets)

    found = tickets.find_by_id(ticket.id)
    assert found.id == ticket.id
    assert found.status == OPEN
    assert found.version == 0
    assert found.company_code == "ACME"
    assert tickets.find_by_id("no-es-un-id") is None
    assert tickets.find_by_id(str(ObjectId())) is None


def test_save_increments_version_and_rejects_stale_writes(db):
    tickets = MongoTicketRepository(db)
    ticket = open_ticket(tickets)

    saved = tickets.save(replace(ticket, title="Impresora atascada"))
    assert saved.version == 1
    assert tickets.find_by_id(ticket.id).title == "Impresora atascada"

    # `ticket` todavía tiene la versión 0
    with pytest.raises(ConcurrentModification):
        tickets.save(replace(ticket, title="Otro título"))
    assert tickets.find_by_id(ticket.id).title == "Impresora atascada"


def test_count_active_for_employee(db, seeded_db, give_workload):
    tickets = MongoTicketRepository(db)
    e1 = seeded_db["e1"]
    give_workload(e1, 2)
    give_workload(e1, 1, status=RESOLVED)

    assert tickets.count_active_for_employee(e1.id) == 2
    assert tickets.count_active_for_employee(seeded_db["e2"].id) == 0


def test_legacy_single_assignee_document(db, seeded_db):
    tickets = MongoTicketRepository(db)
    e1 = seeded_db["e1"]
    result = db.tickets.insert_one({
        "ticketNumber": "TKT-00099",
        "title": "Antiguo",
        "description": "Documento sin assignedEmployees",
        "priority": "low",
        "category": "other",
        "department": "Support",
        "status": IN_PROGRESS,
        "clientId": "c1",
        "companyCode": "ACME",
        "assignedTo": e1.id,
        "assignedToName": e1.name,
        "createdAt": utcnow(),
    })

    ticket = tickets.find_by_id(result.inserted_id)
    assert ticket.employee_ids == [e1.id]
    assert ticket.primary.employee_id == e1.id
    assert tickets.count_active_for_employee(e1.id) == 1


def test_find_active_employees_by_department(db, seeded_db, make_user):
    make_user("Gone", "gone@example.com", "employee", department="Support", is_active=False)
    users = MongoUserRepository(db)

    support = users.find_active_employees("Support")
    assert [e.id for e in support] == [seeded_db["e1"].id, seeded_db["e2"].id]
    assert [e.id for e in users.find_active_employees("Billing")] == [seeded_db["billing"].id]


def test_find_by_ids_ignores_unknown_and_invalid_ids(db, seeded_db):
    users = MongoUserRepository(db)
    e1 = seeded_db["e1"]
    found = users.find_by_ids([e1.id, str(ObjectId()), "basura"])
    assert list(found) == [e1.id]


def test_set_active(db, seeded_db):
    users = MongoUserRepository(db)
    updated = users.set_active(seeded_db["e2"].id, False)
    assert updated.is_active is False
    assert users.find_by_email("E2@example.com").is_active is False


def test_comments_are_listed_oldest_first_and_scoped(db):
    comments = MongoCommentRepository(db)
    first = comments.add(Comment("t1", "u1", "Ana", "client", "Primero", company_code="ACME", created_at=T0))
    second = comments.add(Comment("t1", "e1", "Luis", "employee", "Segundo", company_code="ACME", created_at=T0 + timedelta(minutes=5)))
    comments.add(Comment("t2", "u1", "Ana", "client", "Otro ticket", company_code="ACME", created_at=T0))

    assert [c.id for c in comments.find_by_ticket_id("t1")] == [first.id, second.id]
    assert comments.find_by_ticket_id("t1", {"companyCode": "OTHER"}) == []


def test_count_active_for_employees_in_one_query(db, seeded_db, give_workload):
    tickets = MongoTicketRepository(db)
    e1, e2 = seeded_db["e1"], seeded_db["e2"]
    give_workload(e1, 3)
    give_workload(e2, 1, status=RESOLVED)
    db.tickets.insert_one({
        "ticketNumber": "TKT-00099", "status": IN_PROGRESS, "department": "Support",
        "clientId": "c1", "assignedTo": e2.id, "createdAt": utcnow(),
    })

    counts = tickets.count_active_for_employees([e1.id, e2.id, seeded_db["billing"].id])
    assert counts == {e1.id: 3, e2.id: 1, seeded_db["billing"].id: 0}
    assert tickets.count_active_for_employees([]) == {}


def test_unassigned_finished_ticket_can_be_loaded(db, seeded_db):
    tickets = MongoTicketRepository(db)
    result = db.tickets.insert_one({
        "ticketNumber": "TKT-00100",
        "title": "Cerrado sin asignar",
        "description": "Resuelto antes de asignar a nadie",
        "priority": "low",
        "category": "other",
        "department": "Marketing",
        "status": RESOLVED,
        "clientId": "c1",
        "companyCode": "ACME",
        "createdAt": utcnow(),
    })

    ticket = tickets.find_by_id(result.inserted_id)
    assert ticket.status == RESOLVED
    assert ticket.assigned_employees == ()
    assert [t.id for t in tickets.find({})] == [ticket.id]


def test_legacy_assignments_without_primary_are_normalised(db, seeded_db):
    tickets = MongoTicketRepository(db)
    e1, e2 = seeded_db["e1"], seeded_db["e2"]
    result = db.tickets.insert_one({
        "ticketNumber": "TKT-00101",
        "status": IN_PROGRESS,
        "department": "Support",
        "clientId": "c1",
        "assignedEmployees": [
            {"employeeId": e1.id, "employeeName": e1.name, "assignedAt": utcnow()},
            {"employeeId": e2.id, "employeeName": e2.name, "assignedAt": utcnow()},
            {"employeeId": e1.id, "employeeName": e1.name, "assignedAt": utcnow()},
        ],
        "createdAt": utcnow(),
        "version": 0,
    })

    ticket = tickets.find_by_id(result.inserted_id)
    assert ticket.employee_ids == [e1.id, e2.id]
    assert ticket.primary.employee_id == e1.id
    saved = tickets.save(replace(ticket, title="Guardado"))
    assert saved.version == 1


def test_invalid_ticket_is_not_written(db):
    tickets = MongoTicketRepository(db)
    ticket = open_ticket(tickets)
    with pytest.raises(ValueError):
        tickets.save(replace(ticket, status=RESOLVED))
    assert tickets.find_by_id(ticket.id).status == OPEN
