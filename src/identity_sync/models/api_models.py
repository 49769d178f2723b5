from typing import Any, Dict, Optional

from pydantic import BaseModel


class WebhookResponse(BaseModel):
    message: str
    user: Optional[Dict[str, Any]] = None


class UpdateCreditsRequest(BaseModel):
    credit_fee: int


class HealthResponse(BaseModel):
    status: str
    database: str
