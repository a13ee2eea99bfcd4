# app/main.py
import uvicorn

from app.api import create_app
from app.data.database import Base, engine
# import modeli przed create_all, zeby tabele byly zarejestrowane w metadata
from app.data import models  # noqa: F401
from app.utils.logging import get_logger

logger = get_logger(__name__)

logger.info(f"Models registered in Base.metadata: {list(Base.metadata.tables.keys())}")
try:
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")
except Exception:
    logger.exception("Failed to create database tables")
    raise


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
