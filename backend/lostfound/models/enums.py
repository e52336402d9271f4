from ..extensions import db

# Portable ENUM types: native types on PostgreSQL, VARCHAR on SQLite (tests).

ROLES = ("guest", "staff", "admin")
REPORT_KINDS = ("lost", "found")
REPORT_STATUSES = ("open", "matched", "closed")

role_enum = db.Enum(*ROLES, name="role_enum")
report_kind_enum = db.Enum(*REPORT_KINDS, name="report_kind_enum")
report_status_enum = db.Enum(*REPORT_STATUSES, name="report_status_enum")
