# storefront/data/unit_of_work.py
from sqlalchemy.orm import Session

from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class UnitOfWork:
    """
    Jawna granica transakcji nad sesja SQLAlchemy.

    Wszystkie zmiany w bloku sa zatwierdzane przez commit() albo nie ma ich wcale:
    wyjscie z bloku bez commit (albo przez wyjatek) robi rollback.

        with UnitOfWork(db) as uow:
            repo.decrement(...)
            repo.create_order(...)
            uow.commit()
    """

    def __init__(self, session: Session):
        self.session = session
        self.committed = False

    def __enter__(self) -> "UnitOfWork":
        self.committed = False
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None or not self.committed:
            if exc_type is not None:
                logger.info(f"Rolling back unit of work after {exc_type.__name__}")
            self.rollback()
        return False

    def commit(self) -> None:
        self.session.commit()
        self.committed = True

    def rollback(self) -> None:
        self.session.rollback()
