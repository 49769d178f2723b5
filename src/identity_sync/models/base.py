from __future__ import annotations

from typing import Any, ClassVar, Dict

from pydantic import BaseModel


class DBSerializableModel(BaseModel):
    """
    Base Pydantic model for documents persisted by a DB manager.

    Subclasses declare the collection they live in; adapters use
    `serialize_for_db` as the single place that decides how a model is
    stored, and may post-process the result (e.g. to add `_id`).
    """

    # Logical collection name; subclasses should override
    collection_name: ClassVar[str]

    def serialize_for_db(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_public(self) -> Dict[str, Any]:
        """JSON-compatible representation for API responses."""
        return self.model_dump(mode="json")
