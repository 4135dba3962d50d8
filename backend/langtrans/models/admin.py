from datetime import datetime

from pydantic import BaseModel

from langtrans.models.api_keys import ApiKeyItem


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    status: str = "ok"
    expires_at: datetime


class DashboardResponse(BaseModel):
    """Everything the console's dashboard page renders."""

    keys: list[ApiKeyItem]
    session_expires_at: datetime
