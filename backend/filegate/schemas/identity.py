from pydantic import BaseModel, Field


class Identity(BaseModel):
    """Authenticated caller, as established by the bearer token."""

    subject_id: str = Field(..., min_length=1)
    role: str
    login: str | None = None
