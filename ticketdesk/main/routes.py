# ticketdesk/main/routes.py
import os
from flask import jsonify, request, current_app, send_from_directory
from flask_login import login_required
from ticketdesk.main import main_bp
from ticketdesk.exceptions import RequestValidationError
from ticketdesk.storage import get_blob_store


@main_bp.route('/')
def home():
    return jsonify({"status": "ok", "service": "ticketdesk"})


@main_bp.route('/api/upload', methods=['POST'])
@login_required
def upload():
    file = request.files.get("file")
    if file is None:
        raise RequestValidationError(errors={"file": ["Debe adjuntar un archivo."]})
    url = get_blob_store().upload(file)
    return jsonify({"url": url}), 201


@main_bp.route('/uploads/<path:filename>')
@login_required
def uploaded_file(filename):
    # Cualquier usuario autenticado puede descargar un adjunto si conoce su nombre;
    # el aislamiento entre empresas depende del prefijo aleatorio de LocalBlobStore.
    return send_from_directory(os.path.abspath(current_app.config["UPLOAD_FOLDER"]), filename)
