from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from crosspost.config import settings

DATABASE_URL = settings.database_url  # default: sqlite:///./crosspost.db

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
    pool_pre_ping=True,
)
# Jobs run on worker threads and hand rows back after commit, so keep them loaded.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

Base = declarative_base()
