from pydantic import BaseModel,Field

class Token(BaseModel):
    access_token:str=Field(...,description="The JWT access token")
    token_type:str=Field("bearer",description="The type of token (e.g., 'bearer')")
    identity:str=Field(...,description="Opaque identity carried in the token's 'sub' claim")

class Me(BaseModel):
    identity:str
