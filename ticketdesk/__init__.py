# ticketdesk/__init__.py

from flask import Flask, jsonify, current_app
from flask_login import LoginManager
from flask_pymongo import PyMongo
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from pymongo.errors import ConnectionFailure, ConfigurationError, PyMongoError
import logging
from logging.handlers import RotatingFileHandler
from config import DevelopmentConfig, ProductionConfig, TestingConfig
import os
import sys

# --- Instancias de Extensiones ---
login_manager = LoginManager()
mongo = PyMongo()
limiter = Limiter(key_func=get_remote_address)


# --- Funciones Auxiliares para Modularizar la Configuración ---

def init_app_extensions(app):
    """
    Inicializa las extensiones de Flask y configura la conexión a la BD.
    """
    limiter.init_app(app)

    mongo_uri = app.config.get("MONGO_URI")
    if not mongo_uri:
        raise RuntimeError("FATAL: La variable de entorno MONGO_URI no está configurada.")

    app.logger.info("Intentando conectar a MongoDB...")

    try:
        mongo.init_app(app)
        mongo.cx.server_info() # Fuerza la conexión para verificarla
        app.logger.info("Conexión a MongoDB establecida exitosamente.")
    except (ConnectionFailure, ConfigurationError) as e:
        app.logger.error(f"Error al conectar o configurar MongoDB: {e}")
        raise RuntimeError(f"No se pudo conectar a la base de datos: {e}")

    # La API no usa sesiones: el actor se resuelve en cada petición desde el token.
    login_manager.init_app(app)
    login_manager.session_protection = None

    from ticketdesk.auth.models import actor_from_document, verify_access_token
    from bson.objectid import ObjectId
    from bson.errors import InvalidId

    @login_manager.request_loader
    def load_user_from_request(request):
        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None

        claims = verify_access_token(token.strip())
        if claims is None:
            return None

        try:
            user_data = mongo.db.users.find_one({"_id": ObjectId(claims["id"])})
        except InvalidId:
            return None
        except PyMongoError as e:
            app.logger.error(f"Error en load_user_from_request para user_id {claims['id']}: {e}")
            return None

        if not user_data:
            return None

        actor = actor_from_document(user_data)
        # Un token emitido antes de un cambio de rol o de una desactivación deja de ser válido.
        if actor.role != claims["role"] or not actor.is_active:
            app.logger.warning(f"Token rechazado para el usuario {actor.id}: rol o estado no coinciden.")
            return None
        return actor

    @login_manager.unauthorized_handler
    def unauthorized():
        from ticketdesk.exceptions import Unauthenticated
        error = Unauthenticated()
        return jsonify(error.to_dict()), error.status_code


def register_app_blueprints(app):
    """
    Registra todos los Blueprints de la aplicación.
    """
    from ticketdesk.auth import auth_bp
    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    from ticketdesk.main import main_bp
    app.register_blueprint(main_bp)

    from ticketdesk.tickets import tickets_bp
    app.register_blueprint(tickets_bp, url_prefix='/api/tickets')

    from ticketdesk.users import users_bp
    app.register_blueprint(users_bp, url_prefix='/api/users')


def configure_app_logging(app):
    """
    Configura el sistema de logging de la aplicación.
    """
    log_dir = app.config.get("LOG_DIR", "logs")
    if not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)

    for handler in app.logger.handlers[:]:
        app.logger.removeHandler(handler)

    file_handler = RotatingFileHandler(os.path.join(log_dir, "app.log"), maxBytes=10240, backupCount=10)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'))

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))

    if not app.debug and not app.testing:
        file_handler.setLevel(logging.INFO)
        stream_handler.setLevel(logging.INFO)
        app.logger.setLevel(logging.INFO)
    else:
        file_handler.setLevel(logging.DEBUG)
        stream_handler.setLevel(logging.DEBUG)
        app.logger.setLevel(logging.DEBUG)

    app.logger.addHandler(file_handler)
    app.logger.addHandler(stream_handler)

    # Los módulos del paquete usan logging.getLogger(__name__)
    package_logger = logging.getLogger("ticketdesk")
    package_logger.setLevel(app.logger.level)
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
    package_logger.addHandler(file_handler)
    package_logger.addHandler(stream_handler)

    app.logger.info("Logging inicializado")


def register_app_error_handlers(app):
    """
    Registra los manejadores de errores globales. Todas las respuestas de error son JSON.
    """
    from ticketdesk.exceptions import BaseAppException, DatabaseQueryError

    @app.errorhandler(BaseAppException)
    def app_exception(error):
        if error.status_code >= 500:
            current_app.logger.error(f"{error.kind}: {error.message}", exc_info=error.original_exception)
        else:
            current_app.logger.warning(f"{error.kind}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(PyMongoError)
    def database_error(error):
        wrapped = DatabaseQueryError(original_exception=error)
        current_app.logger.error(f"Error de base de datos: {error}", exc_info=True)
        return jsonify(wrapped.to_dict()), wrapped.status_code

    @app.errorhandler(400)
    def bad_request_error(error):
        return jsonify({"error": "bad_request", "message": "Petición mal formada."}), 400

    @app.errorhandler(404)
    def page_not_found_error(error):
        return jsonify({"error": "not_found", "message": "Recurso no encontrado."}), 404

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        return jsonify({"error": "method_not_allowed", "message": "Método no permitido."}), 405

    @app.errorhandler(413)
    def payload_too_large_error(error):
        return jsonify({"error": "payload_too_large", "message": "El archivo supera el tamaño máximo permitido."}), 413

    @app.errorhandler(429)
    def too_many_requests_error(error):
        return jsonify({"error": "too_many_requests", "message": "Demasiados intentos. Espera un momento."}), 429

    @app.errorhandler(500)
    def internal_server_error(error):
        current_app.logger.error(f"Internal Server Error: {error}", exc_info=True)
        return jsonify({"error": "internal", "message": "Error interno del servidor."}), 500


# --- Función de Fábrica de Aplicación (create_app) ---
def create_app(config_class="development"):
    """
    Función de fábrica para crear y configurar la instancia de la aplicación Flask.
    """
    app = Flask(__name__)

    config_map = {
        'testing': TestingConfig,
        'production': ProductionConfig,
        'development': DevelopmentConfig
    }
    app.config.from_object(config_map.get(config_class, DevelopmentConfig))

    configure_app_logging(app)
    init_app_extensions(app)
    register_app_blueprints(app)
    register_app_error_handlers(app)

    from ticketdesk import commands as commands
    app.cli.add_command(commands.init_db_data_command)
    app.cli.add_command(commands.reconcile_workload_command)

    return app
