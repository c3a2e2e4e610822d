# Import all the models, so that Base has them before being
# used by create_all
from app.db.base_class import Base
from app.models.pdf_job import PdfJob

__all__ = ["Base", "PdfJob"]  # noqa: F401
