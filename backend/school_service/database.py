import os
import logging
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from .models import Base
from .errors import Conflict

logger = logging.getLogger(__name__)

# Look for .env in the project root (two levels above this package)
current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(os.path.dirname(current_dir))
dotenv_path = os.path.join(project_root, '.env')

load_dotenv(dotenv_path)

SQLALCHEMY_DATABASE_URL = os.getenv("SQLALCHEMY_DATABASE_URL")

if not SQLALCHEMY_DATABASE_URL:
    raise ValueError("SQLALCHEMY_DATABASE_URL is not set in the environment or .env file")

engine = create_async_engine(
    SQLALCHEMY_DATABASE_URL,
    echo=os.getenv("SQLALCHEMY_ECHO", "false").lower() == "true",
)

SessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

async def get_db():
    async with SessionLocal() as session:
        yield session

async def create_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

@asynccontextmanager
async def unit_of_work(db: AsyncSession):
    """Commit every write made inside the block at once, or none of them."""
    try:
        yield db
        await db.commit()
    except StaleDataError as e:
        await db.rollback()
        logger.warning(f"Concurrent update detected, rolled back: {str(e)}")
        raise Conflict("The record was modified by another request, please retry")
    except Exception:
        await db.rollback()
        raise
