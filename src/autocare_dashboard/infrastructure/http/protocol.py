"""Backend response envelope."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ApiEnvelope(BaseModel):
    """``{success, data, message?, autoReply?}``"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    success: bool = False
    data: Any = None
    message: str | None = None
    auto_reply: dict[str, Any] | None = Field(default=None, alias="autoReply")
