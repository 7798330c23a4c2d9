from pydantic import BaseModel

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int

class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int
