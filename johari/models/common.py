from typing import TypeAlias
from pydantic import Field
from typing_extensions import Annotated

Identity:TypeAlias=Annotated[str,Field(...,min_length=1,max_length=255,description="Opaque identifier issued at sign-in")]
SessionID:TypeAlias=Annotated[str,Field(...,min_length=1,max_length=64,description="Opaque identifier of a Johari session")]
