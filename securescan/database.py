from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from securescan.config import settings


def build_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        # connections are shared across FastAPI worker threads
        connect_args["check_same_thread"] = False
    return create_engine(url, connect_args=connect_args)


engine = build_engine(settings.database_url) if settings.database_url else None
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()