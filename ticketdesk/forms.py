# ticketdesk/forms.py

from flask_wtf import FlaskForm
from wtforms import Field
from ticketdesk.exceptions import RequestValidationError


class ApiForm(FlaskForm):
    """
    Formulario base de la API. Flask-WTF toma los datos del cuerpo JSON cuando
    la petición no trae form-data. La API se autentica con token, sin CSRF.
    """
    class Meta:
        csrf = False

    def validate_or_raise(self):
        if not self.validate_on_submit():
            raise RequestValidationError(errors=self.errors)
        return self


class StringListField(Field):
    """Lista de cadenas (por ejemplo, employeeIds o URLs de adjuntos) enviada como array JSON."""

    def process_formdata(self, valuelist):
        self.data = [str(value).strip() for value in valuelist if value is not None and str(value).strip()]

    def _value(self):
        return ",".join(self.data or [])
