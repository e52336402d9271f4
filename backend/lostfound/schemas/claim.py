from marshmallow import fields, validate

from . import BaseSchema


class ClaimSchema(BaseSchema):
    id = fields.Str(dump_only=True)
    match_id = fields.Str(data_key="matchId")
    staff_id = fields.Str(data_key="staffId")
    recipient_id = fields.Str(data_key="recipientId")
    proof_url = fields.Str(data_key="proofUrl")
    received_at = fields.DateTime(data_key="receivedAt")
    updated_at = fields.DateTime(data_key="updatedAt")
    updated_by = fields.Str(data_key="updatedBy")


class ClaimCreateSchema(BaseSchema):
    match_id = fields.Str(data_key="matchId", required=True, validate=validate.Length(min=1))
    recipient_id = fields.Str(data_key="recipientId", required=True, validate=validate.Length(min=1))


class ClaimUpdateSchema(BaseSchema):
    match_id = fields.Str(data_key="matchId")
    recipient_id = fields.Str(data_key="recipientId", validate=validate.Length(min=1))
    staff_id = fields.Str(data_key="staffId", validate=validate.Length(min=1))


class RecipientSchema(BaseSchema):
    recipient_id = fields.Str(data_key="recipientId")
    username = fields.Str()
    email = fields.Str()
    phone = fields.Str()
    item_name = fields.Str(data_key="itemName")
    lost_report_id = fields.Str(data_key="lostReportId")
    found_report_id = fields.Str(data_key="foundReportId")
