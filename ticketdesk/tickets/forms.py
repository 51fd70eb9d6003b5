from wtforms import StringField, TextAreaField, SelectField
from wtforms.validators import DataRequired, Length, Optional
from ticketdesk.forms import ApiForm, StringListField
from ticketdesk.models import PRIORITIES, CATEGORIES


class TicketCreateForm(ApiForm):
    title = StringField('Título', validators=[DataRequired(message="Este campo es obligatorio"), Length(max=200)])
    description = TextAreaField('Descripción', validators=[DataRequired(message="Este campo es obligatorio")])
    priority = SelectField('Prioridad', choices=list(PRIORITIES), default="medium")
    category = SelectField('Categoría', choices=list(CATEGORIES), validators=[DataRequired(message="Este campo es obligatorio")])
    # Si no se indica, se usa el departamento del usuario que crea el ticket
    department = StringField('Departamento', validators=[Optional(), Length(max=100)])
    attachments = StringListField('Adjuntos')


class StatusForm(ApiForm):
    status = StringField('Estado', validators=[DataRequired(message="Este campo es obligatorio")])


class AssignForm(ApiForm):
    employeeIds = StringListField('Empleados')


class EmployeeForm(ApiForm):
    employeeId = StringField('Empleado', validators=[DataRequired(message="Este campo es obligatorio")])


class CommentForm(ApiForm):
    content = TextAreaField('Comentario', validators=[DataRequired(message="El comentario no puede estar vacío.")])
    attachments = StringListField('Adjuntos')
