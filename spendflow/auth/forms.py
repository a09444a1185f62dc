from wtforms import BooleanField, PasswordField, StringField
from wtforms.validators import DataRequired, Email, Length, Optional

from spendflow.utils.forms import JsonForm


class SignupForm(JsonForm):
	name = StringField("Full Name", validators=[DataRequired(), Length(max=200)])
	email = StringField(
		"Email",
		validators=[DataRequired(), Email(), Length(max=255)],
	)
	company_name = StringField("Company Name", validators=[DataRequired(), Length(max=255)])
	password = PasswordField(
		"Password",
		validators=[DataRequired(), Length(min=8, message="Use at least 8 characters.")],
	)
	country = StringField("Country", validators=[Optional(), Length(max=120)])
	base_currency = StringField("Base Currency", validators=[Optional(), Length(min=3, max=10)])


class LoginForm(JsonForm):
	email = StringField("Email", validators=[DataRequired(), Email()])
	password = PasswordField("Password", validators=[DataRequired()])
	remember = BooleanField("Remember me")
