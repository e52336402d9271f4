from marshmallow import fields, validate

from . import BaseSchema

_score = validate.Range(min=0, max=1, error="Score must be between 0 and 1")


class MatchSchema(BaseSchema):
    id = fields.Str(dump_only=True)
    lost_report_id = fields.Str(data_key="lostReportId")
    found_report_id = fields.Str(data_key="foundReportId")
    score = fields.Float()
    created_by = fields.Str(data_key="createdBy")
    updated_by = fields.Str(data_key="updatedBy")
    created_at = fields.DateTime(data_key="createdAt")
    updated_at = fields.DateTime(data_key="updatedAt")


class MatchCreateSchema(BaseSchema):
    lost_report_id = fields.Str(data_key="lostReportId", required=True, validate=validate.Length(min=1))
    found_report_id = fields.Str(data_key="foundReportId", required=True, validate=validate.Length(min=1))
    score = fields.Float(load_default=0.0, validate=_score)


class MatchUpdateSchema(BaseSchema):
    lost_report_id = fields.Str(data_key="lostReportId", validate=validate.Length(min=1))
    found_report_id = fields.Str(data_key="foundReportId", validate=validate.Length(min=1))
    score = fields.Float(validate=_score)

