from pydantic import BaseModel, Field
from typing import List
import datetime
import uuid


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Reply(BaseModel):
    id: str = Field(default_factory=lambda: f"reply-{uuid.uuid4().hex}")
    content: str
    author: str
    createdAt: datetime.datetime = Field(default_factory=utc_now)

    class Config:
        from_attributes = True


class Post(BaseModel):
    id: str = ""  # assigned by the store on insert
    title: str
    content: str
    author: str
    votes: int = Field(default=0, ge=0)
    isAnswered: bool = False
    createdAt: datetime.datetime = Field(default_factory=utc_now)
    replies: List[Reply] = Field(default_factory=list)

    class Config:
        from_attributes = True


# --- Request bodies ---
class PostCreate(BaseModel):
    title: str
    content: str
    author: str


class ReplyCreate(BaseModel):
    content: str
    author: str
