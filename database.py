from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

import config


def build_engine(url: str):
    if url.startswith("sqlite"):
        # sqlite has no pool sizing; the busy timeout bounds lock waits instead
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": config.DB_POOL_TIMEOUT},
        )
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_recycle=280,   # helps with idle connection timeouts
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_timeout=config.DB_POOL_TIMEOUT,
    )


engine = build_engine(config.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()


# Database dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
