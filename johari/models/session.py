# johari/models/session.py
from typing import Any, Dict, List
from pydantic import BaseModel, Field

from johari.models.common import Identity, SessionID


class SessionFields(BaseModel):
    """The stored body of a session document."""
    creator_id: Identity
    display_name: str = Field("", max_length=100, description="Human label for the subject.")
    self_selections: List[str] = Field(default_factory=list, description="Descriptors the subject chose, in vocabulary order.")

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(include={"creator_id", "display_name", "self_selections"})


class Session(SessionFields):
    id: SessionID

    @property
    def is_assessed(self) -> bool:
        return bool(self.self_selections)

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Session":
        return cls(id=doc_id, **data)


class FeedbackRecord(BaseModel):
    session_id: SessionID
    submitter_id: Identity
    selections: List[str] = Field(default_factory=list, description="Descriptors this peer chose, in vocabulary order.")

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump()

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "FeedbackRecord":
        return cls(**data)
