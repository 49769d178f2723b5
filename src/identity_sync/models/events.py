"""
Typed webhook events sent by the identity provider.

Each supported `type` maps to its own model; every other type is kept as an
`UnhandledEvent` so that it can be acknowledged without being acted upon.
Only the fields the sync uses are declared, everything else is ignored.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Mapping, Optional, Type, Union

from pydantic import BaseModel, Field


USER_CREATED = "user.created"
USER_UPDATED = "user.updated"
USER_DELETED = "user.deleted"


class EmailAddress(BaseModel):
    id: Optional[str] = None
    email_address: Optional[str] = None


class UserProfileData(BaseModel):
    id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None


class UserCreatedData(UserProfileData):
    email_addresses: List[EmailAddress] = Field(default_factory=list)

    @property
    def primary_email(self) -> Optional[str]:
        """First listed address, the one the provider reports as primary on sign-up."""
        if not self.email_addresses:
            return None
        return self.email_addresses[0].email_address or None


class UserDeletedData(BaseModel):
    id: Optional[str] = None
    deleted: bool = True


class UserCreatedEvent(BaseModel):
    type: Literal["user.created"]
    data: UserCreatedData

    @property
    def external_id(self) -> Optional[str]:
        return self.data.id


class UserUpdatedEvent(BaseModel):
    type: Literal["user.updated"]
    data: UserProfileData

    @property
    def external_id(self) -> Optional[str]:
        return self.data.id


class UserDeletedEvent(BaseModel):
    type: Literal["user.deleted"]
    data: UserDeletedData

    @property
    def external_id(self) -> Optional[str]:
        return self.data.id


class UnhandledEvent(BaseModel):
    type: str
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def external_id(self) -> Optional[str]:
        value = self.data.get("id")
        return value if isinstance(value, str) else None


WebhookEvent = Union[UserCreatedEvent, UserUpdatedEvent, UserDeletedEvent, UnhandledEvent]

_EVENT_MODELS: Dict[str, Type[BaseModel]] = {
    USER_CREATED: UserCreatedEvent,
    USER_UPDATED: UserUpdatedEvent,
    USER_DELETED: UserDeletedEvent,
}


def parse_event(payload: Mapping[str, Any]) -> WebhookEvent:
    """
    Build the event variant matching `payload["type"]`.

    Raises pydantic.ValidationError when the payload does not fit the model.
    """
    event_type = payload.get("type")
    model = _EVENT_MODELS.get(event_type, UnhandledEvent) if isinstance(event_type, str) else UnhandledEvent
    return model.model_validate(payload)  # type: ignore[return-value]
