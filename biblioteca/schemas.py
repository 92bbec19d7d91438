from datetime import date
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


class Message(BaseModel):
    """Plain confirmation body returned by delete endpoints and empty listings."""

    message: str


class PatchModel(BaseModel):
    """
    Base class for partial-update payloads.

    Internal Working:
    - pydantic tracks which fields the client actually sent (model_fields_set)
    - as_patch() keeps only those fields, then drops None values and
      blank strings, so "not sent", "null" and "" all mean "keep the
      stored value"
    """

    def as_patch(self) -> Dict[str, Any]:
        patch = {}
        for key, value in self.model_dump(exclude_unset=True).items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            patch[key] = value
        return patch


class UserBase(BaseModel):
    """Base schema with common user fields."""

    name: str = Field(..., min_length=1, max_length=40)
    last_name: Optional[str] = None
    document: str = Field(..., min_length=1)

    @field_validator("name", "document")
    @classmethod
    def check_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class UserCreate(UserBase):
    """
    Schema for creating a new user.

    Used for POST requests. Inherits all fields from UserBase.
    """

    pass


class UserUpdate(PatchModel):
    """
    Schema for updating a user.

    All fields are optional; blank strings are accepted and ignored.
    """

    name: Optional[str] = Field(None, max_length=40)
    last_name: Optional[str] = None
    document: Optional[str] = None


class User(UserBase):
    id: int

    model_config = ConfigDict(from_attributes=True)


class BookBase(BaseModel):
    """Base schema with common book fields."""

    title: str = Field(..., min_length=1, max_length=40)
    publisher: str = Field(..., min_length=1, max_length=40)

    @field_validator("title", "publisher")
    @classmethod
    def check_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class BookCreate(BookBase):
    """
    Schema for creating a new book.

    Availability is not part of the payload: every new book starts
    available.
    """

    pass


class BookUpdate(PatchModel):
    """
    Schema for updating a book.

    Only title and publisher can be changed. Availability belongs to the
    loan lifecycle.
    """

    title: Optional[str] = Field(None, max_length=40)
    publisher: Optional[str] = Field(None, max_length=40)


class Book(BookBase):
    """
    Schema for book responses.

    loan_id is null while the book is available.
    """

    id: int
    available: bool
    loan_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class LoanCreate(BaseModel):
    """
    Schema for creating a loan.

    Business Logic:
    - start_date must be today or later
    - due_date must be after today; it is not compared with start_date
    - book_ids that do not exist are ignored as long as one of them does
    """

    start_date: date
    due_date: date
    user_id: int
    book_ids: List[int]

    @field_validator("start_date")
    @classmethod
    def start_date_not_past(cls, value: date) -> date:
        if value < date.today():
            raise ValueError("start date must be today or later")
        return value

    @field_validator("due_date")
    @classmethod
    def due_date_in_future(cls, value: date) -> date:
        if value <= date.today():
            raise ValueError("due date must be in the future")
        return value


class LoanUpdate(PatchModel):
    """Partial date update. Dates are not re-validated."""

    start_date: Optional[date] = None
    due_date: Optional[date] = None


class LoanView(BaseModel):
    """
    Flattened, read-only view of a loan.

    titles follows the order of the loan's books (ascending book id) and
    user_name is the display name of the borrowing user.
    """

    id: int
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    titles: List[str] = []
    user_name: Optional[str] = None
