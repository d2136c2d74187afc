# johari/models/window.py
from typing import List
from pydantic import BaseModel, ConfigDict, Field, computed_field

from johari.models.session import FeedbackRecord, Session


class Partition(BaseModel):
    """The four Johari quadrants, each in vocabulary order."""
    model_config = ConfigDict(frozen=True)

    arena: List[str] = Field(default_factory=list, description="Known to self and to peers.")
    blind_spot: List[str] = Field(default_factory=list, description="Known to peers only.")
    facade: List[str] = Field(default_factory=list, description="Known to self only.")
    unknown: List[str] = Field(default_factory=list, description="Known to neither.")


class WindowSnapshot(BaseModel):
    session: Session
    feedback: List[FeedbackRecord]
    peer_selections: List[str] = Field(..., description="Union of all peer selections, in vocabulary order.")
    partition: Partition

    @computed_field
    @property
    def feedback_count(self) -> int:
        return len(self.feedback)
