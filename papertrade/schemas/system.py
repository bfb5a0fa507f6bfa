"""Pydantic schemas for the System API."""

from pydantic import BaseModel, field_validator

from papertrade.utils.constants import VALID_INTERVALS


class SchedulerUpdate(BaseModel):
    sync_interval: str

    @field_validator("sync_interval")
    @classmethod
    def _validate_interval(cls, value: str) -> str:
        if value not in VALID_INTERVALS:
            allowed = ", ".join(VALID_INTERVALS)
            raise ValueError(f"must be one of: {allowed}")
        return value
