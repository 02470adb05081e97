"""Pydantic schemas for agreement submission.

AgreementInput is deliberately permissive (plain strings, no length
constraints) so the submission coordinator can collect every field
problem in one pass instead of failing on the first.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class AgreementInput(BaseModel):
    first_name: str = ""
    last_name: str = ""
    agreed: bool = False


class FieldError(BaseModel):
    field: str
    message: str


class AgreementRecord(BaseModel):
    """A stored agreement.  `id` is assigned by the store."""
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    first_name: str
    last_name: str
    confirmation_code: str
    agreed_at: datetime
    ip_hash: str | None = None
    user_agent: str | None = None


class AgreementOut(BaseModel):
    """What the member sees after signing (integrity fields stay private)."""
    first_name: str
    last_name: str
    confirmation_code: str
    agreed_at: datetime


class AgreementTemplate(BaseModel):
    template: str
