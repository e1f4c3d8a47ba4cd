from pydantic import BaseModel
from datetime import datetime

class CurrentUser(BaseModel):
    """Identity attached to a request by the session guard."""
    id: str
    email: str
    full_name: str

    class Config:
        from_attributes = True
        extra = "ignore"

class UserSummary(CurrentUser):
    pass

class UserPublic(BaseModel):
    id: str
    full_name: str
    email: str
    created_at: datetime

    class Config:
        from_attributes = True

class UserProfile(UserPublic):
    is_first_login: bool

class CommentAuthor(BaseModel):
    id: str
    full_name: str

    class Config:
        from_attributes = True
