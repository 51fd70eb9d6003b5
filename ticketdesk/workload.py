# ticketdesk/workload.py


class WorkloadTracker:
    """
    Cuenta los tickets activos (abiertos o en progreso) de cada empleado.
    No guarda estado propio: cada llamada consulta la colección de tickets.
    """

    def __init__(self, tickets):
        self.tickets = tickets

    def active_count(self, employee_id):
        return self.tickets.count_active_for_employee(employee_id)

    def active_counts(self, employee_ids):
        """Diccionario id -> tickets activos para listados de varios empleados."""
        return self.tickets.count_active_for_employees(list(employee_ids))
