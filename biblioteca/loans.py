"""
Loan lifecycle: creation, editing and deletion of loans, and the read
projection used for every loan response.

The invariant kept here is that a book is unavailable exactly while some
loan holds it (book.loan_id is set). Creation and deletion touch the loan
row and the book rows in a single transaction.
"""

import logging
from collections import defaultdict
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from biblioteca import models, schemas
from biblioteca.errors import BadRequestError, ConflictError, NotFoundError
from biblioteca.repository import Repository


logger = logging.getLogger(__name__)


def project_loan(
    loan: models.Loan,
    user: Optional[models.User],
    books: Iterable[models.Book],
) -> schemas.LoanView:
    """
    Build the flattened view of a loan from already resolved records.

    Does not query: user and books must be loaded by the caller.
    """
    return schemas.LoanView(
        id=loan.id,
        start_date=loan.start_date,
        due_date=loan.due_date,
        titles=[book.title for book in books],
        user_name=user.name if user is not None else None,
    )


def load_loan_views(db: Session, loans: List[models.Loan]) -> List[schemas.LoanView]:
    """
    Resolve users and books for a batch of loans and project them.

    Internal Working:
    1. One query for the users referenced by the loans
    2. One query for the books held by the loans, ordered by book id
    3. Books are grouped per loan in memory and every loan is projected
    """
    if not loans:
        return []

    users = {
        user.id: user
        for user in Repository(db, models.User).get_many(loan.user_id for loan in loans)
    }

    books_by_loan = defaultdict(list)
    for book in _books_held_by(db, [loan.id for loan in loans]):
        books_by_loan[book.loan_id].append(book)

    return [
        project_loan(loan, users.get(loan.user_id), books_by_loan[loan.id])
        for loan in loans
    ]


def _books_held_by(
    db: Session, loan_ids: List[int], for_update: bool = False
) -> List[models.Book]:
    query = (
        db.query(models.Book)
        .filter(models.Book.loan_id.in_(loan_ids))
        .order_by(models.Book.id)
    )
    if for_update:
        query = query.with_for_update()
    return query.all()


def _claim_books(db: Session, loan: models.Loan, books: List[models.Book]) -> None:
    """
    Mark books as held by loan, only if they are still available.

    The availability check is part of the UPDATE itself, so a book taken
    by a concurrent transaction after it was read is not claimed twice.

    Raises:
        ConflictError: fewer rows were claimed than requested
    """
    book_ids = [book.id for book in books]
    claimed = (
        db.query(models.Book)
        .filter(models.Book.id.in_(book_ids), models.Book.available.is_(True))
        .update(
            {models.Book.available: False, models.Book.loan_id: loan.id},
            synchronize_session="fetch",
        )
    )
    if claimed != len(book_ids):
        raise ConflictError("One or more of the requested books are no longer available")


def create_loan(db: Session, loan_data: schemas.LoanCreate) -> schemas.LoanView:
    """
    Create a loan and take its books out of circulation.

    Business Logic:
    1. The user must exist
    2. At least one of the requested book ids must exist; unknown ids
       are dropped
    3. Every resolved book must be available
    4. The loan is inserted and the books are claimed in the same
       transaction; any failure rolls both back

    Args:
        db: Database session
        loan_data: Validated loan request

    Returns:
        Projected view of the new loan

    Raises:
        NotFoundError: user does not exist
        BadRequestError: none of the book ids exist
        ConflictError: a requested book is already on loan
    """
    try:
        user = Repository(db, models.User).get(loan_data.user_id)
        if user is None:
            raise NotFoundError("User not found")

        books = Repository(db, models.Book).get_many(loan_data.book_ids, for_update=True)
        if not books:
            raise BadRequestError("No matching books found")

        for book in books:
            if not book.available:
                raise ConflictError(f"Book with id {book.id} is not currently available")

        loan = Repository(db, models.Loan).upsert(
            models.Loan(
                start_date=loan_data.start_date,
                due_date=loan_data.due_date,
                user_id=user.id,
            )
        )
        _claim_books(db, loan, books)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Created loan %s for user %s with books %s",
        loan.id,
        user.id,
        [book.id for book in books],
    )
    return project_loan(loan, user, books)


def list_loans(db: Session) -> List[schemas.LoanView]:
    return load_loan_views(db, Repository(db, models.Loan).list())


def get_loan(db: Session, loan_id: int) -> Optional[schemas.LoanView]:
    loan = Repository(db, models.Loan).get(loan_id)
    if loan is None:
        return None
    return load_loan_views(db, [loan])[0]


def edit_loan(
    db: Session, loan_id: int, loan_data: schemas.LoanUpdate
) -> Optional[schemas.LoanView]:
    """
    Overwrite the dates that were supplied. Books are never touched.

    Returns None when the loan does not exist.
    """
    repo = Repository(db, models.Loan)
    loan = repo.get(loan_id)
    if loan is None:
        return None

    for key, value in loan_data.as_patch().items():
        setattr(loan, key, value)
    repo.upsert(loan)
    db.commit()
    return load_loan_views(db, [loan])[0]


def delete_loan(db: Session, loan_id: int) -> None:
    """
    Delete a loan and return its books to circulation.

    Internal Working:
    1. Lock the books held by the loan
    2. Set available=True and clear loan_id on each of them, then flush
    3. Delete the loan row and commit

    Book updates are flushed before the DELETE so the foreign key never
    points at a missing loan. Everything runs in one transaction.

    Raises:
        NotFoundError: loan does not exist
    """
    repo = Repository(db, models.Loan)
    try:
        loan = repo.get(loan_id)
        if loan is None:
            raise NotFoundError(f"Loan with id {loan_id} not found")

        books = _books_held_by(db, [loan.id], for_update=True)
        for book in books:
            book.available = True
            book.loan_id = None
        db.flush()

        repo.delete(loan)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Deleted loan %s, released books %s", loan_id, [book.id for book in books])
