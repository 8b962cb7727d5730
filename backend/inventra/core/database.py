"""
Database Configuration
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator

from inventra.core.config import settings

db_url = settings.database_url

engine = create_engine(
    db_url,
    connect_args={"check_same_thread": False} if "sqlite" in db_url else {},
    echo=settings.DEBUG
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.
    Uncommitted work is discarded when the session closes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Initialize database tables"""
    # Import all models to register them with Base
    from inventra.models import (  # noqa: F401
        User, Item, ItemPriceHistory, CustomerPrice, Customer,
        Transaction, TransactionItem, AdditionalCharge,
        ReturnTransaction, ReturnItem, StockTransaction,
        Payment, PaymentAllocation
    )
    Base.metadata.create_all(bind=bind or engine)
