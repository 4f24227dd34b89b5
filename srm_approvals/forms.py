from werkzeug.datastructures import MultiDict
from wtforms import Form, StringField, TextAreaField, FloatField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from srm_approvals.errors import ValidationError


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class RequestSubmissionForm(Form):
    title = StringField('Title', filters=[_strip], validators=[
        DataRequired(message='Title is required'),
        Length(min=5, max=200, message='Title must be at least 5 characters')])
    purpose = TextAreaField('Purpose', filters=[_strip], validators=[
        DataRequired(message='Purpose is required'),
        Length(min=10, message='Purpose must be at least 10 characters')])
    college = StringField('College', filters=[_strip], validators=[
        DataRequired(message='College is required'), Length(max=100)])
    department = StringField('Department', filters=[_strip], validators=[
        DataRequired(message='Department is required'), Length(max=100)])
    expense_category = StringField('Expense Category', filters=[_strip], validators=[
        Optional(), Length(max=100)])
    cost_estimate = FloatField('Cost Estimate', validators=[
        Optional(), NumberRange(min=0, message='Cost estimate cannot be negative')])


def validate_submission(attributes):
    """Validates raw submit attributes and returns the cleaned dictionary.

    Raises ``ValidationError`` with the per-field messages when anything is wrong.
    """
    if not isinstance(attributes, dict):
        raise ValidationError('Request attributes must be a mapping')

    formdata = MultiDict({k: str(v) for k, v in attributes.items() if v is not None})
    form = RequestSubmissionForm(formdata=formdata)
    if not form.validate():
        raise ValidationError('Please fix the highlighted fields', errors=form.errors)

    cleaned = {name: form[name].data for name in ('title', 'purpose', 'college', 'department')}
    cleaned['expense_category'] = form.expense_category.data or None
    cleaned['cost_estimate'] = form.cost_estimate.data
    return cleaned
