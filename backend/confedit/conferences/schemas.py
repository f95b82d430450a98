# backend/confedit/conferences/schemas.py
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime


class ConferenceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_by: int | None
    updated_at: datetime | None = None


class ConferenceUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
