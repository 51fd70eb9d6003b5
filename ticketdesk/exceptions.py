class BaseAppException(Exception):
    """Clase base para excepciones personalizadas de la aplicación."""
    kind = "error"
    status_code = 500
    default_message = "Error de la aplicación."

    def __init__(self, message=None, original_exception=None, **details):
        self.message = message or self.default_message
        self.original_exception = original_exception
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        payload = {"error": self.kind, "message": self.message}
        payload.update(self.details)
        return payload


class DatabaseQueryError(BaseAppException):
    """Excepción para errores ocurridos durante una consulta a la base de datos."""
    kind = "database"
    status_code = 503
    default_message = "Error al ejecutar la consulta en la base de datos."


class Unauthenticated(BaseAppException):
    """Token ausente, inválido o expirado."""
    kind = "unauthenticated"
    status_code = 401
    default_message = "Se requiere un token de acceso válido."


class Forbidden(BaseAppException):
    """El actor no tiene permiso sobre el recurso o la ruta."""
    kind = "forbidden"
    status_code = 403
    default_message = "No tienes permiso para realizar esta acción."


class NotFound(BaseAppException):
    kind = "not_found"
    status_code = 404
    default_message = "Recurso no encontrado."

    def __init__(self, message=None, missing_ids=None, **details):
        if missing_ids is not None:
            details["missingIds"] = list(missing_ids)
        super().__init__(message, **details)


class AlreadyAssigned(BaseAppException):
    kind = "already_assigned"
    status_code = 409
    default_message = "El empleado ya está asignado a este ticket."


class NotAssigned(BaseAppException):
    kind = "not_assigned"
    status_code = 400
    default_message = "El empleado no está asignado a este ticket."


class CapacityExceeded(BaseAppException):
    """
    Uno o más empleados alcanzaron el límite de tickets activos.
    `employees` es una lista de dicts con employeeId, employeeName y activeTickets.
    """
    kind = "capacity_exceeded"
    status_code = 409
    default_message = "Límite de tickets activos alcanzado."

    def __init__(self, employees, limit, message=None):
        self.employees = list(employees)
        self.limit = limit
        super().__init__(message, employees=self.employees, limit=limit)


class InvalidTransition(BaseAppException):
    kind = "invalid_transition"
    status_code = 409
    default_message = "Transición de estado no permitida."

    def __init__(self, current, target, message=None):
        self.current = current
        self.target = target
        super().__init__(message or f"No se puede pasar de '{current}' a '{target}'.", current=current, target=target)


class RequestValidationError(BaseAppException):
    """Faltan campos obligatorios o tienen valores inválidos."""
    kind = "validation"
    status_code = 400
    default_message = "Los datos enviados no son válidos."

    def __init__(self, message=None, errors=None):
        super().__init__(message, errors=errors or {})


class ConcurrentModification(BaseAppException):
    """El documento cambió entre la lectura y la escritura."""
    kind = "conflict"
    status_code = 409
    default_message = "El ticket fue modificado por otra petición. Inténtalo de nuevo."
