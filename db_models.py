import re
from typing import List, Optional

from email_validator import validate_email
from pydantic import BaseModel, ValidationInfo, field_validator

PHONE_PATTERN = re.compile(r"^\+?[0-9]*$")
PHONE_MAX_LENGTH = 15
EMAIL_MAX_LENGTH = 50

FIELD_LABELS = {"phoneNumber": "phone number", "email": "email"}


class IdentifyRequest(BaseModel):
    email: Optional[str] = None
    phoneNumber: Optional[str] = None

    @field_validator("email", "phoneNumber", mode="before")
    @classmethod
    def missing_as_empty(cls, value, info: ValidationInfo):
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError(f"Please provide a string for the {FIELD_LABELS[info.field_name]}.")
        return value

    @field_validator("phoneNumber")
    @classmethod
    def check_phone_number(cls, value: str) -> str:
        if not PHONE_PATTERN.match(value):
            raise ValueError(
                "Please enter only numbers for the phone number. (You can start with a '+' though.)"
            )
        if len(value) > PHONE_MAX_LENGTH:
            raise ValueError(f"Your phone number cannot be more than {PHONE_MAX_LENGTH} characters.")
        return value

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        if len(value) > EMAIL_MAX_LENGTH:
            raise ValueError(f"Your email cannot be more than {EMAIL_MAX_LENGTH} characters.")
        if value:
            # bare addresses only; "Name <addr>" is rejected
            validate_email(value, check_deliverability=False)
        return value


class ContactResponse(BaseModel):
    primaryContactId: int
    emails: List[str]
    phoneNumbers: List[str]
    secondaryContactIds: List[int]


class FinalResponse(BaseModel):
    contact: ContactResponse


class ResetResponse(BaseModel):
    message: str
