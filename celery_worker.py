"""
Celery worker entry point.

    celery -A celery_worker.celery_app worker --loglevel=info
"""

from app.core.celery_app import celery_app
from app.db.base import Base
from app.db.session import engine

# Workers may start before the API has created the schema.
Base.metadata.create_all(bind=engine)

__all__ = ["celery_app"]

if __name__ == "__main__":
    celery_app.start()
