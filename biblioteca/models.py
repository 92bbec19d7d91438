from biblioteca.database import Base
from sqlalchemy import Column, Integer, String, ForeignKey, Date, Boolean


class User(Base):
    """
    User model representing library members.

    Loans point at their user through loan.user_id. There is no
    relationship() here: a user's loans are fetched with an explicit query
    when they are needed.
    """

    __tablename__ = "user"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(40), nullable=False)
    last_name = Column(String, nullable=True)
    document = Column(String, nullable=False)


class Loan(Base):
    """
    Loan model binding one user to a set of books for a date range.

    The book set is stored on the book side (book.loan_id), which makes
    the foreign key the loan-book association.
    """

    __tablename__ = "loan"

    id = Column(Integer, primary_key=True, index=True)
    start_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)


class Book(Base):
    """
    Book model representing a single loanable copy.

    Business Logic:
    - available is True on creation and is only changed by the loan
      lifecycle in biblioteca.loans
    - loan_id is the loan currently holding the book, NULL when available
    """

    __tablename__ = "book"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(40), nullable=False, index=True)
    publisher = Column(String(40), nullable=False)
    available = Column(Boolean, default=True, nullable=False)
    loan_id = Column(Integer, ForeignKey("loan.id"), nullable=True, index=True)
