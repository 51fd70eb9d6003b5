# ticketdesk/utils.py

from datetime import datetime, timezone
from bson.objectid import ObjectId
from bson.errors import InvalidId


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """
    MongoDB devuelve fechas sin zona horaria (en UTC). Las normalizamos a
    datetime con tzinfo para poder compararlas con utcnow().
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value):
    return as_utc(value).isoformat() if value is not None else None


def to_object_id(value):
    """Convierte un id en ObjectId; devuelve None si no es un id válido."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def unique_in_order(values):
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result
