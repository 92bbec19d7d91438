import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from biblioteca import models, schemas
from biblioteca.errors import ConflictError
from biblioteca.repository import Repository


logger = logging.getLogger(__name__)


def _apply_patch(record, patch: schemas.PatchModel) -> None:
    for key, value in patch.as_patch().items():
        setattr(record, key, value)


def create_user(db: Session, user_data: schemas.UserCreate) -> models.User:
    user = Repository(db, models.User).upsert(models.User(**user_data.model_dump()))
    db.commit()
    db.refresh(user)
    return user


def list_users(db: Session) -> Optional[List[models.User]]:
    """Return every user, or None when there are none."""
    users = Repository(db, models.User).list()
    return users or None


def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return Repository(db, models.User).get(user_id)


def edit_user(
    db: Session, user_id: int, user_data: schemas.UserUpdate
) -> Optional[models.User]:
    repo = Repository(db, models.User)
    user = repo.get(user_id)
    if user is None:
        return None

    _apply_patch(user, user_data)
    repo.upsert(user)
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user_id: int) -> bool:
    """
    Delete a user by id.

    Returns False when the user does not exist. A user who still holds
    loans cannot be deleted: the loans would point at nothing.

    Raises:
        ConflictError: the user has at least one loan
    """
    repo = Repository(db, models.User)
    if not repo.exists_by_id(user_id):
        return False

    has_loans = (
        db.query(models.Loan.id).filter(models.Loan.user_id == user_id).first()
        is not None
    )
    if has_loans:
        logger.warning("Refusing to delete user %s: user has active loans", user_id)
        raise ConflictError(f"User with id {user_id} has active loans")

    repo.delete(repo.get(user_id))
    db.commit()
    return True


def create_book(db: Session, book_data: schemas.BookCreate) -> models.Book:
    book = models.Book(**book_data.model_dump(), available=True)
    Repository(db, models.Book).upsert(book)
    db.commit()
    db.refresh(book)
    return book


def list_books(db: Session) -> Optional[List[models.Book]]:
    """Return every book, or None when there are none."""
    books = Repository(db, models.Book).list()
    return books or None


def get_book(db: Session, book_id: int) -> Optional[models.Book]:
    return Repository(db, models.Book).get(book_id)


def edit_book(
    db: Session, book_id: int, book_data: schemas.BookUpdate
) -> Optional[models.Book]:
    repo = Repository(db, models.Book)
    book = repo.get(book_id)
    if book is None:
        return None

    _apply_patch(book, book_data)
    repo.upsert(book)
    db.commit()
    db.refresh(book)
    return book


def delete_book(db: Session, book_id: int) -> bool:
    """
    Delete a book by id.

    Returns False when the book does not exist.

    Raises:
        ConflictError: the book is part of a loan
    """
    repo = Repository(db, models.Book)
    book = repo.get(book_id)
    if book is None:
        return False

    if book.loan_id is not None:
        logger.warning("Refusing to delete book %s: held by loan %s", book_id, book.loan_id)
        raise ConflictError(f"Book with id {book_id} is currently on loan")

    repo.delete(book)
    db.commit()
    return True
