# ticketdesk/storage.py

import os
import uuid
import logging
from flask import current_app
from werkzeug.utils import secure_filename
from ticketdesk.exceptions import RequestValidationError

logger = logging.getLogger(__name__)


class BlobStore:
    """Almacén opaco de archivos: recibe un archivo y devuelve la URL con la que se sirve."""
    def upload(self, file):
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    """Guarda los archivos en un directorio local y los sirve bajo `url_prefix`."""

    def __init__(self, folder, url_prefix="/uploads"):
        self.folder = folder
        self.url_prefix = url_prefix.rstrip("/")

    def upload(self, file):
        filename = secure_filename(file.filename or "")
        if not filename:
            raise RequestValidationError(errors={"file": ["Nombre de archivo no válido."]})

        os.makedirs(self.folder, exist_ok=True)
        stored_name = f"{uuid.uuid4().hex}_{filename}"
        file.save(os.path.join(self.folder, stored_name))
        logger.info(f"Archivo '{filename}' guardado como '{stored_name}'.")
        return f"{self.url_prefix}/{stored_name}"


def get_blob_store():
    return LocalBlobStore(current_app.config["UPLOAD_FOLDER"])
