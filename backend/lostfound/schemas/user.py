from marshmallow import fields, validate

from ..models.enums import ROLES
from . import BaseSchema

_role = validate.OneOf(ROLES, error="Invalid role")


class UserSchema(BaseSchema):
    id = fields.Str(dump_only=True)
    username = fields.Str()
    email = fields.Str()
    phone = fields.Str(allow_none=True)
    role = fields.Str()
    identity_document_url = fields.Str(data_key="identityDocumentUrl", allow_none=True)
    created_at = fields.DateTime(data_key="createdAt")
    updated_at = fields.DateTime(data_key="updatedAt")


class RegisterSchema(BaseSchema):
    email = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)
    username = fields.Str(required=True, validate=validate.Length(min=1, max=120))
    phone = fields.Str(required=True, validate=validate.Length(min=1, max=32))


class UserCreateSchema(BaseSchema):
    email = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)
    username = fields.Str(required=True, validate=validate.Length(min=1, max=120))
    phone = fields.Str(load_default=None, validate=validate.Length(max=32))
    role = fields.Str(load_default="guest", validate=_role)


class UserUpdateSchema(BaseSchema):
    username = fields.Str(required=True, validate=validate.Length(min=1, max=120))
    email = fields.Str(required=True)
    phone = fields.Str(validate=validate.Length(max=32))
    role = fields.Str(validate=_role)


class ProfileUpdateSchema(BaseSchema):
    username = fields.Str(validate=validate.Length(min=1, max=120))
    phone = fields.Str(validate=validate.Length(min=1, max=32))


class RoleSchema(BaseSchema):
    role = fields.Str(required=True, validate=_role)


class LoginSchema(BaseSchema):
    email = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)


class VerifySchema(BaseSchema):
    token = fields.Str(load_default=None)
