from typing import Generic, Iterable, List, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from biblioteca.database import Base


ModelT = TypeVar("ModelT", bound=Base)

# Largest value an INTEGER primary key can hold (signed 64-bit).
MAX_ID = 2**63 - 1


def _storable(record_id: int) -> bool:
    return -MAX_ID - 1 <= record_id <= MAX_ID


class Repository(Generic[ModelT]):
    """
    Thin persistence interface over one mapped model.

    Internal Working:
    - Every method works on the caller's session and never commits
    - upsert() and delete() flush so generated ids and constraint errors
      show up inside the caller's transaction
    - Absent records come back as None; database failures propagate
    - Ids outside the 64-bit key range cannot exist and are treated as
      absent instead of being sent to the database

    Usage:
        books = Repository(db, models.Book)
        book = books.get(book_id)
    """

    def __init__(self, db: Session, model: Type[ModelT]):
        self.db = db
        self.model = model

    def get(self, record_id: int) -> Optional[ModelT]:
        if not _storable(record_id):
            return None
        return self.db.get(self.model, record_id)

    def get_many(self, record_ids: Iterable[int], for_update: bool = False) -> List[ModelT]:
        """
        Fetch every record whose id is in record_ids, ordered by id.

        Ids that do not exist, or could not exist, are skipped. With
        for_update=True the rows are locked for the rest of the
        transaction on backends that support SELECT ... FOR UPDATE.
        """
        ids = sorted({record_id for record_id in record_ids if _storable(record_id)})
        if not ids:
            return []
        query = (
            self.db.query(self.model)
            .filter(self.model.id.in_(ids))
            .order_by(self.model.id)
        )
        if for_update:
            query = query.with_for_update()
        return query.all()

    def list(self) -> List[ModelT]:
        return self.db.query(self.model).order_by(self.model.id).all()

    def upsert(self, record: ModelT) -> ModelT:
        self.db.add(record)
        self.db.flush()
        return record

    def delete(self, record: ModelT) -> None:
        self.db.delete(record)
        self.db.flush()

    def exists_by_id(self, record_id: int) -> bool:
        if not _storable(record_id):
            return False
        return (
            self.db.query(self.model.id).filter(self.model.id == record_id).first()
            is not None
        )
