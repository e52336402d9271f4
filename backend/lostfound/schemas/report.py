from marshmallow import fields, validate

from ..models.enums import REPORT_KINDS, REPORT_STATUSES
from . import BaseSchema


class ReportSchema(BaseSchema):
    id = fields.Str(dump_only=True)
    category_id = fields.Str(data_key="categoryId")
    owner_id = fields.Str(data_key="ownerId", dump_only=True)
    item_name = fields.Str(data_key="itemName")
    incident_location = fields.Str(data_key="incidentLocation", allow_none=True)
    claim_location_id = fields.Str(data_key="claimLocationId", allow_none=True)
    description = fields.Str(allow_none=True)
    kind = fields.Str(validate=validate.OneOf(REPORT_KINDS))
    photo_urls = fields.List(fields.Str(), data_key="photoUrls", dump_only=True)
    status = fields.Str(dump_only=True)
    reported_at = fields.DateTime(data_key="reportedAt", dump_only=True)
    updated_at = fields.DateTime(data_key="updatedAt", dump_only=True)
    updated_by = fields.Str(data_key="updatedBy", dump_only=True)


class ReportCreateSchema(BaseSchema):
    category_id = fields.Str(data_key="categoryId", required=True, validate=validate.Length(min=1))
    item_name = fields.Str(data_key="itemName", required=True, validate=validate.Length(min=1, max=200))
    kind = fields.Str(required=True, validate=validate.OneOf(REPORT_KINDS))
    incident_location = fields.Str(data_key="incidentLocation", load_default=None, validate=validate.Length(max=200))
    claim_location_id = fields.Str(data_key="claimLocationId", load_default=None)
    description = fields.Str(load_default=None)


class ReportUpdateSchema(BaseSchema):
    category_id = fields.Str(data_key="categoryId", validate=validate.Length(min=1))
    item_name = fields.Str(data_key="itemName", validate=validate.Length(min=1, max=200))
    kind = fields.Str(validate=validate.OneOf(REPORT_KINDS))
    incident_location = fields.Str(data_key="incidentLocation", validate=validate.Length(max=200))
    claim_location_id = fields.Str(data_key="claimLocationId")
    description = fields.Str()
    status = fields.Str(validate=validate.OneOf(REPORT_STATUSES))


class ReportStatusSchema(BaseSchema):
    status = fields.Str(required=True, validate=validate.OneOf(REPORT_STATUSES, error="Invalid status"))


class ReportFilterSchema(BaseSchema):
    kind = fields.Str(validate=validate.OneOf(REPORT_KINDS), load_default=None)
    status = fields.Str(validate=validate.OneOf(REPORT_STATUSES), load_default=None)
    category_id = fields.Str(data_key="categoryId", load_default=None)
    owner_id = fields.Str(data_key="ownerId", load_default=None)


class ReportSummarySchema(BaseSchema):
    id = fields.Str()
    item_name = fields.Str(data_key="itemName")
    owner_id = fields.Str(data_key="ownerId")
    status = fields.Str()
