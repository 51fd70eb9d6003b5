from flask import jsonify
from flask_login import login_required, current_user
from ticketdesk.users import users_bp
from ticketdesk.auth.forms import UserCreateForm
from ticketdesk.auth.decorators import admin_required, client_required, admin_or_client_required
from ticketdesk.auth.models import EMPLOYEE, CLIENT
from ticketdesk.services import get_user_service


def _actor():
    return current_user._get_current_object()


@users_bp.route("", methods=["POST"])
@admin_or_client_required
def create_user():
    form = UserCreateForm().validate_or_raise()
    user = get_user_service().create_user(
        _actor(),
        name=form.name.data.strip(),
        email=form.email.data,
        password=form.password.data,
        role=form.role.data,
        department=form.department.data,
        company_code=form.companyCode.data,
    )
    return jsonify(user.to_json()), 201


@users_bp.route("/employees", methods=["GET"])
@admin_required
def list_employees():
    users = get_user_service().list_by_role(_actor(), EMPLOYEE)
    return jsonify([user.to_json() for user in users])


@users_bp.route("/employees/workload", methods=["GET"])
@admin_required
def employees_workload():
    return jsonify(get_user_service().employee_workloads(_actor()))


@users_bp.route("/clients", methods=["GET"])
@admin_required
def list_clients():
    users = get_user_service().list_by_role(_actor(), CLIENT)
    return jsonify([user.to_json() for user in users])


@users_bp.route("/client-users", methods=["GET"])
@client_required
def list_client_users():
    users = get_user_service().list_client_users(_actor())
    return jsonify([user.to_json() for user in users])


@users_bp.route("/<user_id>/deactivate", methods=["PATCH"])
@login_required
def deactivate_user(user_id):
    user = get_user_service().set_active(_actor(), user_id, False)
    return jsonify(user.to_json())


@users_bp.route("/<user_id>/reactivate", methods=["PATCH"])
@login_required
def reactivate_user(user_id):
    user = get_user_service().set_active(_actor(), user_id, True)
    return jsonify(user.to_json())
