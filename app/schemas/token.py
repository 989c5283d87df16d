from pydantic import BaseModel
from typing import Optional

class TokenPayload(BaseModel):
    sub: str # The user id issued by the auth provider
    exp: Optional[int] = None
