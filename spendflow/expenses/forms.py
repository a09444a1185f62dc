from __future__ import annotations

from datetime import date

from wtforms import BooleanField, DecimalField, IntegerField, StringField, TextAreaField
from wtforms.fields import DateField
from wtforms.validators import DataRequired, InputRequired, Length, Optional, ValidationError

from spendflow.utils.forms import JsonForm


class ExpenseForm(JsonForm):
    amount = DecimalField("Amount", places=2, rounding=None, validators=[InputRequired()])
    currency = StringField("Currency", validators=[Optional(), Length(min=3, max=10)])
    category = StringField("Category", validators=[DataRequired(), Length(max=120)])
    description = TextAreaField("Description", validators=[Optional(), Length(max=500)])
    department = StringField("Department", validators=[Optional(), Length(max=120)])
    date = DateField("Date of expense", validators=[Optional()], default=date.today)


class DecisionForm(JsonForm):
    expense_id = IntegerField("Expense", validators=[InputRequired()])
    approved = BooleanField("Approved")
    comments = TextAreaField("Comments", validators=[Optional(), Length(max=500)])

    def validate_approved(self, field):  # pylint: disable=missing-docstring
        if not field.raw_data:
            raise ValidationError("This field is required.")
        # JsonForm passes JSON booleans through untouched; anything else arrives as text.
        if not isinstance(field.raw_data[0], bool):
            raise ValidationError("Must be true or false.")
