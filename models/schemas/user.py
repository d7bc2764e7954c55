from marshmallow import EXCLUDE, Schema, fields, validate

from models.user import USERNAME_MAX_LENGTH


class _RequestSchema(Schema):
    class Meta:
        unknown = EXCLUDE


class CredentialsSchema(_RequestSchema):
    username = fields.String(
        required=True,
        validate=validate.Length(min=3, max=USERNAME_MAX_LENGTH),
    )
    password = fields.String(
        required=True,
        load_only=True,
        validate=validate.Length(min=6, max=128),
    )


class RefreshSchema(_RequestSchema):
    refresh_token = fields.String(required=True)


class LogoutSchema(_RequestSchema):
    refresh_token = fields.String(load_default=None, allow_none=True)


class UserOutSchema(Schema):
    username = fields.String()
    created_at = fields.DateTime()
