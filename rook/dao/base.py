"""
Shared DAO plumbing for tenant tables.

WHY: Tickets, devices and their child rows all live under an organization.
The generic lookups here take org_id so the scoping is written once.
"""

from typing import Generic, TypeVar, Type, Optional, List, Any
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rook.models.base import Base

# Type variable for model class
ModelType = TypeVar("ModelType", bound=Base)


class BaseDAO(Generic[ModelType]):
    """
    Base Data Access Object providing org-scoped CRUD for tenant models.

    WHY: Every table in this service carries org_id. Putting the org filter
    in the shared helpers means a DAO method cannot forget it.

    Type Parameters:
        ModelType: The SQLAlchemy model class this DAO manages
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize DAO with model class and database session.

        Args:
            model: The SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    async def create(self, **kwargs: Any) -> ModelType:
        """
        Create a new record.

        Args:
            **kwargs: Field values for the new record

        Returns:
            The created model instance with database-generated fields populated
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()  # Flush to get auto-generated fields
        await self.session.refresh(instance)
        return instance

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        """
        Retrieve a single record by primary key, ignoring organization.

        WHY: Only for paths that must tell "missing" apart from "other
        tenant" internally (bulk device actions). Never return the row to a
        caller from another organization.
        """
        result = await self.session.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def get_by_id_and_org(self, id: int, org_id: int) -> Optional[ModelType]:
        """
        Retrieve a record by ID, ensuring it belongs to the specified organization.

        WHY: Critical for preventing cross-organization data access
        (A01: Broken Access Control). A row in another org reads as missing.

        Args:
            id: Primary key value
            org_id: Organization ID that must own the record

        Returns:
            The model instance if found and belongs to org, None otherwise
        """
        result = await self.session.execute(
            select(self.model).where(
                self.model.id == id,
                self.model.org_id == org_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_by_org(self, org_id: int, skip: int = 0, limit: int = 100) -> List[ModelType]:
        """
        Retrieve records for a specific organization (multi-tenant support).

        Args:
            org_id: Organization ID to filter by
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            List of model instances for the organization
        """
        result = await self.session.execute(
            select(self.model)
            .where(self.model.org_id == org_id)
            .order_by(self.model.id)
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def update_in_org(self, id: int, org_id: int, **kwargs: Any) -> Optional[ModelType]:
        """
        Update a record in one UPDATE statement, scoped by organization.

        WHY: All given fields go out in a single statement, so a concurrent
        reader never sees half of a patch applied.

        Args:
            id: Primary key of the record to update
            org_id: Organization that must own the record
            **kwargs: Fields to update

        Returns:
            Updated model instance if found, None otherwise
        """
        result = await self.session.execute(
            update(self.model)
            .where(self.model.id == id, self.model.org_id == org_id)
            .values(**kwargs)
            .returning(self.model)
        )
        instance = result.scalar_one_or_none()
        if instance:
            await self.session.refresh(instance)
        return instance
