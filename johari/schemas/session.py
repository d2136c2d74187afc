from typing import List,Optional
from pydantic import BaseModel,Field


class SessionCreate(BaseModel):
    display_name:str=Field("",max_length=100,description="Human label for the subject")


class SessionRename(BaseModel):
    display_name:str=Field(...,max_length=100)


class SelectionSubmit(BaseModel):
    selections:List[str]=Field(...,description="Descriptors chosen from the vocabulary. Replaces any earlier submission.")


class VocabularyResponse(BaseModel):
    descriptors:List[str]
    max_selections:Optional[int]=None


class ErrorResponse(BaseModel):
    detail:str
    code:str
