import uuid

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import as_declarative, declared_attr
from sqlalchemy.sql import func


def new_id() -> str:
    return str(uuid.uuid4())


@as_declarative()
class Base:
    """Declarative base: string UUID key plus audit timestamps."""

    id = Column(String(36), primary_key=True, default=new_id)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    __name__: str

    @declared_attr
    def __tablename__(cls) -> str:  # noqa: N805
        # PdfJob -> pdf_jobs
        snake = "".join(
            f"_{ch.lower()}" if ch.isupper() and i else ch.lower()
            for i, ch in enumerate(cls.__name__)
        )
        return f"{snake}s"
