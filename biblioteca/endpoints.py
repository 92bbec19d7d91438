from biblioteca import crud
from biblioteca import loans
from biblioteca import models
from biblioteca import schemas
from biblioteca.database import engine, get_db
from biblioteca.errors import LibraryError

import logging
import os
from typing import List, Union
from sqlalchemy.orm import Session
from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

models.Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Biblioteca API",
    description="Library management backend with users, books and loans",
    version="1.0.0",
)


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError):
    """
    Translate service-layer rule violations into HTTP responses.

    The body keeps FastAPI's {"detail": ...} shape so clients handle
    these the same way as HTTPException errors.
    """
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def _internal_error(db: Session, detail: str) -> HTTPException:
    db.rollback()
    logger.exception(detail)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancers.

    Returns:
        Simple status message indicating the service is running
    """
    return {"status": "healthy", "service": "biblioteca-api"}


# Users


@app.post(
    "/usuarios/crear",
    response_model=schemas.User,
    status_code=status.HTTP_201_CREATED,
)
def create_user(user: schemas.UserCreate, db: Session = Depends(get_db)):
    """
    Create a new user.

    Raises:
        HTTPException: 500 if the user could not be stored
    """
    try:
        return crud.create_user(db, user)
    except Exception:
        raise _internal_error(db, "Error while creating the user")


@app.get("/usuarios/traer", response_model=List[schemas.User])
def list_users(db: Session = Depends(get_db)):
    """
    List all users.

    Raises:
        HTTPException: 404 if there are no users at all
    """
    users = crud.list_users(db)
    if users is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No users registered",
        )
    return users


@app.get("/usuarios/traer/{user_id}", response_model=schemas.User)
def get_user(user_id: int, db: Session = Depends(get_db)):
    user = crud.get_user(db, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User with id {user_id} not found",
        )
    return user


@app.put("/usuarios/editar/{user_id}", response_model=schemas.User)
def edit_user(
    user_id: int, user_update: schemas.UserUpdate, db: Session = Depends(get_db)
):
    """
    Update a user's information.

    Only fields that are present, non-null and non-blank are written.

    Raises:
        HTTPException: 404 if user not found
    """
    user = crud.edit_user(db, user_id, user_update)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User with id {user_id} not found",
        )
    return user


@app.delete("/usuarios/eliminar/{user_id}", response_model=schemas.Message)
def delete_user(user_id: int, db: Session = Depends(get_db)):
    """
    Delete a user.

    Raises:
        HTTPException: 404 if user not found
        ConflictError: 409 if the user still has loans
    """
    if not crud.delete_user(db, user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User with id {user_id} not found",
        )
    return {"message": "User deleted successfully"}


# Books


@app.post(
    "/libros/crear",
    response_model=schemas.Book,
    status_code=status.HTTP_201_CREATED,
)
def create_book(book: schemas.BookCreate, db: Session = Depends(get_db)):
    """
    Create a new book. New books are always available.

    Raises:
        HTTPException: 500 if the book could not be stored
    """
    try:
        return crud.create_book(db, book)
    except Exception:
        raise _internal_error(db, "Error while creating the book")


@app.get("/libros/traer", response_model=List[schemas.Book])
def list_books(db: Session = Depends(get_db)):
    books = crud.list_books(db)
    if books is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No books registered",
        )
    return books


@app.get("/libros/traer/{book_id}", response_model=schemas.Book)
def get_book(book_id: int, db: Session = Depends(get_db)):
    book = crud.get_book(db, book_id)
    if book is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Book with id {book_id} not found",
        )
    return book


@app.put("/libros/editar/{book_id}", response_model=schemas.Book)
def edit_book(
    book_id: int, book_update: schemas.BookUpdate, db: Session = Depends(get_db)
):
    """
    Update a book's title and/or publisher.

    Availability is not editable here; it follows the loans.

    Raises:
        HTTPException: 404 if book not found
    """
    book = crud.edit_book(db, book_id, book_update)
    if book is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Book with id {book_id} not found",
        )
    return book


@app.delete("/libros/eliminar/{book_id}", response_model=schemas.Message)
def delete_book(book_id: int, db: Session = Depends(get_db)):
    if not crud.delete_book(db, book_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Book with id {book_id} not found",
        )
    return {"message": "Book deleted successfully"}


# Loans


@app.post(
    "/prestamos/crear",
    response_model=schemas.LoanView,
    status_code=status.HTTP_201_CREATED,
)
def create_loan(loan: schemas.LoanCreate, db: Session = Depends(get_db)):
    """
    Lend one or more books to a user.

    Business Logic:
    1. The user must exist (404)
    2. At least one requested book must exist (400)
    3. Every existing requested book must be available (409)
    4. The loan is stored and its books become unavailable atomically

    Returns:
        The created loan as a LoanView

    Raises:
        LibraryError: 404, 400 or 409 as above
        HTTPException: 500 on any other failure
    """
    try:
        return loans.create_loan(db, loan)
    except LibraryError:
        raise
    except Exception:
        raise _internal_error(db, "Error while registering the loan")


@app.get(
    "/prestamos/traer",
    response_model=Union[List[schemas.LoanView], schemas.Message],
)
def list_loans(db: Session = Depends(get_db)):
    """
    List all loans.

    Unlike users and books, an empty result is not an error: a
    message is returned with status 200.
    """
    loan_views = loans.list_loans(db)
    if not loan_views:
        return {"message": "No loans registered yet, please register a loan"}
    return loan_views


@app.get("/prestamos/traer/{loan_id}", response_model=schemas.LoanView)
def get_loan(loan_id: int, db: Session = Depends(get_db)):
    loan_view = loans.get_loan(db, loan_id)
    if loan_view is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Loan with id {loan_id} not found",
        )
    return loan_view


@app.put(
    "/prestamos/editar/{loan_id}",
    response_model=schemas.LoanView,
    response_model_exclude_none=True,
)
def edit_loan(
    loan_id: int, loan_update: schemas.LoanUpdate, db: Session = Depends(get_db)
):
    """
    Change a loan's start and/or due date.

    Dates that are missing or null keep their stored value. The response
    omits null fields.

    Raises:
        HTTPException: 404 if loan not found
    """
    loan_view = loans.edit_loan(db, loan_id, loan_update)
    if loan_view is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Loan with id {loan_id} not found",
        )
    return loan_view


@app.delete("/prestamos/eliminar/{loan_id}", response_model=schemas.Message)
def delete_loan(loan_id: int, db: Session = Depends(get_db)):
    """
    Delete a loan and make its books available again.

    Raises:
        LibraryError: 404 if loan not found
        HTTPException: 500 on any other failure
    """
    try:
        loans.delete_loan(db, loan_id)
    except LibraryError:
        raise
    except Exception:
        raise _internal_error(db, "Error while deleting the loan")
    return {"message": "Loan deleted successfully"}
