from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_current_user
from app.infrastructure.database.session import get_db_session
from app.infrastructure.container import ServiceContainer


# Dependency to get the current user
CurrentUser = Depends(get_current_user)

# Dependency to get the database session
DBSession = Depends(get_db_session)


async def get_service_container(db: AsyncSession = Depends(get_db_session)) -> ServiceContainer:
    """
    Build the service container for this request.

    Each request gets its own container bound to its own database session.
    """
    return ServiceContainer(db=db)
