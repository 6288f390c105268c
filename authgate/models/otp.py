import pymongo
from beanie import Document
from pydantic import Field
from pymongo import IndexModel
from datetime import datetime, timezone

from authgate.constants import OtpReason


class OneTimeCode(Document):
    """One-time code for a (mobile number, reason) slot.

    The unique index on the slot keeps at most one code per pair; a new send
    removes the previous record before inserting.
    """

    mobile_number: str
    reason: OtpReason
    code: str
    expires_at: datetime
    is_used: bool = False
    used_at: datetime | None = None
    resend_attempts: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "one_time_codes"
        indexes = [
            IndexModel(
                [("mobile_number", pymongo.ASCENDING), ("reason", pymongo.ASCENDING)],
                name="mobile_number_reason",
                unique=True,
            ),
            IndexModel([("expires_at", pymongo.ASCENDING)], name="expires_at"),
        ]
