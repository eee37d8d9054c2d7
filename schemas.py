import re
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime

from models import TaskStatus

EMAIL_PATTERN = re.compile(r".+@.+\..+")


def _strip(value):
    if isinstance(value, str):
        return value.strip()
    return value


def _to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    # due dates are stored naive, in server local time
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserCreate(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not EMAIL_PATTERN.fullmatch(value):
            raise ValueError("Please fill a valid email address")
        return value

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if not value:
            raise ValueError("Password is required")
        return value


class UserOut(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    email: str
    created_at: datetime


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class Message(BaseModel):
    message: str


class TaskCreate(CamelModel):
    # title and category are checked by the task operations so that a
    # missing value is a 400, not a schema error
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    category: Optional[str] = None

    @field_validator("title", "description", "category", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("due_date")
    @classmethod
    def local_due_date(cls, value):
        return _to_local_naive(value)


class TaskUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    status: Optional[str] = None
    category: Optional[str] = None

    @field_validator("title", "description", "status", "category", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("due_date")
    @classmethod
    def local_due_date(cls, value):
        return _to_local_naive(value)


class TaskOut(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    user_id: int
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    status: TaskStatus
    category: str
    created_at: datetime
    updated_at: datetime
