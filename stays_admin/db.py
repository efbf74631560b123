from contextlib import asynccontextmanager

from fastapi import Request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from .errors import AppError, ConflictError, InternalError

Base = declarative_base()


def get_engine(database_url: str):
    return create_async_engine(database_url, echo=False, future=True, pool_pre_ping=True)


def get_session(engine):
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False
    )


async def get_db(request: Request):
    async with request.app.state.sessionmaker() as session:
        yield session


@asynccontextmanager
async def transaction(session: AsyncSession, action: str = "write"):
    """
    Commit everything done inside the block, or roll all of it back.

    Domain errors pass through unchanged; IntegrityError becomes a 409 and any
    other SQLAlchemyError a 500.
    """
    try:
        yield session
        await session.commit()
    except AppError:
        await session.rollback()
        raise
    except IntegrityError as e:
        await session.rollback()
        raise ConflictError(f"Failed to {action}: duplicate or conflicting record", detail=str(e.orig))
    except SQLAlchemyError as e:
        await session.rollback()
        raise InternalError(f"Failed to {action}", detail=str(e))
    except Exception:
        await session.rollback()
        raise
