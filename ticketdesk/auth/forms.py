from wtforms import StringField, PasswordField, SelectField
from wtforms.validators import DataRequired, Email, ValidationError, Length, Optional
import re
from ticketdesk.forms import ApiForm
from ticketdesk.auth.models import ROLES


def password_complexity_validator(form, field):
    password = field.data or ""
    errors = []

    if len(password) < 8:
        errors.append("La contraseña debe tener al menos 8 caracteres.")
    if not re.search(r"\d", password):
        errors.append("La contraseña debe contener al menos un número.")
    if not re.search(r"[A-Za-z]", password):
        errors.append("La contraseña debe contener al menos una letra.")

    if errors:
        raise ValidationError(" ".join(errors))


class LoginForm(ApiForm):
    email = StringField('Correo Electrónico', validators=[DataRequired(message="Este campo es obligatorio")])
    password = PasswordField('Contraseña', validators=[DataRequired(message="Este campo es obligatorio")])


class UserCreateForm(ApiForm):
    name = StringField('Nombre', validators=[DataRequired(message="Este campo es obligatorio"), Length(min=2, max=100)])
    email = StringField('Correo Electrónico', validators=[DataRequired(message="Este campo es obligatorio"), Email()])
    password = PasswordField(
        "Contraseña",
        validators=[
            DataRequired(message="Este campo es obligatorio"),
            password_complexity_validator,
        ],
    )
    role = SelectField("Tipo de usuario", choices=sorted(ROLES), validators=[DataRequired(message="Este campo es obligatorio")])
    department = StringField('Departamento', validators=[Optional(), Length(max=100)])
    companyCode = StringField('Código de empresa', validators=[Optional(), Length(min=1, max=50)])
