from flask import jsonify, current_app
from flask_login import login_required, current_user
import logging
from ticketdesk import limiter
from ticketdesk.auth import auth_bp
from ticketdesk.auth.forms import LoginForm
from ticketdesk.exceptions import Unauthenticated
from ticketdesk.services import get_user_service

logger = logging.getLogger(__name__)


@auth_bp.route("/login", methods=["POST"])
@limiter.limit(lambda: current_app.config["LOGIN_RATE_LIMIT"])
def login():
    form = LoginForm().validate_or_raise()
    user = get_user_service().authenticate(form.email.data, form.password.data)
    if user is None:
        raise Unauthenticated("Correo electrónico o contraseña inválidos")

    logger.info(f"Inicio de sesión correcto del usuario {user.id} ({user.role}).")
    return jsonify({"user": user.to_json(), "token": user.get_access_token()})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(current_user.to_json())
