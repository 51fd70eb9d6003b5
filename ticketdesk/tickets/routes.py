from flask import jsonify
from flask_login import login_required, current_user
from ticketdesk.tickets import tickets_bp
from ticketdesk.tickets.forms import TicketCreateForm, StatusForm, AssignForm, EmployeeForm, CommentForm
from ticketdesk.auth.decorators import admin_required, employee_required, staff_required, tenant_required
from ticketdesk.services import get_ticket_service


def _actor():
    return current_user._get_current_object()


@tickets_bp.route("", methods=["POST"])
@tenant_required
def create_ticket():
    form = TicketCreateForm().validate_or_raise()
    ticket = get_ticket_service().create_ticket(
        _actor(),
        title=form.title.data,
        description=form.description.data,
        priority=form.priority.data,
        category=form.category.data,
        department=form.department.data,
        attachments=form.attachments.data or (),
    )
    return jsonify(ticket.to_json()), 201


@tickets_bp.route("", methods=["GET"])
@staff_required
def list_tickets():
    tickets = get_ticket_service().list_all(_actor())
    return jsonify([ticket.to_json() for ticket in tickets])


@tickets_bp.route("/my-tickets", methods=["GET"])
@tenant_required
def my_tickets():
    tickets = get_ticket_service().list_for_client(_actor())
    return jsonify([ticket.to_json() for ticket in tickets])


@tickets_bp.route("/assigned", methods=["GET"])
@employee_required
def assigned_tickets():
    tickets = get_ticket_service().list_assigned(_actor())
    return jsonify([ticket.to_json() for ticket in tickets])


@tickets_bp.route("/<ticket_id>", methods=["GET"])
@login_required
def ticket_detail(ticket_id):
    ticket = get_ticket_service().get_ticket(_actor(), ticket_id)
    return jsonify(ticket.to_json())


@tickets_bp.route("/<ticket_id>", methods=["PATCH"])
@staff_required
def update_status(ticket_id):
    form = StatusForm().validate_or_raise()
    ticket = get_ticket_service().update_status(_actor(), ticket_id, form.status.data.strip())
    return jsonify(ticket.to_json())


@tickets_bp.route("/<ticket_id>/assign", methods=["PATCH"])
@admin_required
def assign_employees(ticket_id):
    form = AssignForm().validate_or_raise()
    ticket = get_ticket_service().assign_employees(_actor(), ticket_id, form.employeeIds.data or [])
    return jsonify(ticket.to_json())


@tickets_bp.route("/<ticket_id>/add-employee", methods=["PATCH"])
@admin_required
def add_employee(ticket_id):
    form = EmployeeForm().validate_or_raise()
    ticket = get_ticket_service().add_employee(_actor(), ticket_id, form.employeeId.data.strip())
    return jsonify(ticket.to_json())


@tickets_bp.route("/<ticket_id>/remove-employee", methods=["PATCH"])
@admin_required
def remove_employee(ticket_id):
    form = EmployeeForm().validate_or_raise()
    ticket = get_ticket_service().remove_employee(_actor(), ticket_id, form.employeeId.data.strip())
    return jsonify(ticket.to_json())


@tickets_bp.route("/<ticket_id>/comments", methods=["POST"])
@login_required
def add_comment(ticket_id):
    form = CommentForm().validate_or_raise()
    comment = get_ticket_service().add_comment(
        _actor(), ticket_id, form.content.data, attachments=form.attachments.data or ()
    )
    return jsonify(comment.to_json()), 201


@tickets_bp.route("/<ticket_id>/comments", methods=["GET"])
@login_required
def list_comments(ticket_id):
    comments = get_ticket_service().list_comments(_actor(), ticket_id)
    return jsonify([comment.to_json() for comment in comments])
