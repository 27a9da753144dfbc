"""Holiday Pydantic v2 schemas."""

from __future__ import annotations

import uuid
import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hr_leave.common.constants import HolidayType


class HolidayCreate(BaseModel):
    """Payload for creating or replacing a holiday."""

    name: str = Field(..., min_length=1, max_length=200)
    date: dt.date
    type: HolidayType = HolidayType.public
    description: Optional[str] = None
    is_optional: Optional[bool] = Field(
        default=None,
        description="Defaults to true for optional holidays, false otherwise.",
    )

    @model_validator(mode="after")
    def default_is_optional(self) -> "HolidayCreate":
        if self.is_optional is None:
            self.is_optional = self.type == HolidayType.optional
        return self


class HolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: uuid.UUID
    name: str
    date: dt.date
    type: HolidayType
    description: Optional[str] = None
    is_optional: bool
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None
