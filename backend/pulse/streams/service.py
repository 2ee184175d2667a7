import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.streams.models import DeliveryStream, Repository, TechStream


async def delivery_stream_id_by_name(db: AsyncSession, name: str | None) -> uuid.UUID | None:
    if not name:
        return None
    result = await db.execute(select(DeliveryStream.id).where(DeliveryStream.name == name))
    return result.scalar_one_or_none()


async def tech_stream_id_by_name(db: AsyncSession, name: str | None) -> uuid.UUID | None:
    if not name:
        return None
    result = await db.execute(select(TechStream.id).where(TechStream.name == name))
    return result.scalar_one_or_none()


async def tech_stream_by_install_id(db: AsyncSession, install_id: str | int | None) -> TechStream | None:
    if install_id is None or install_id == "":
        return None
    result = await db.execute(select(TechStream).where(TechStream.github_install_id == str(install_id)))
    return result.scalar_one_or_none()


async def repository_by_full_name(db: AsyncSession, full_name: str | None) -> Repository | None:
    """``org/repo`` -> Repository, matched on its org and repo name parts."""
    if not full_name:
        return None
    parts = full_name.split("/")
    if len(parts) < 2:
        return None
    org, repo_name = parts[0], parts[1]
    result = await db.execute(
        select(Repository).where(
            Repository.github_org == org,
            Repository.github_repo_name == repo_name,
        )
    )
    return result.scalars().first()


async def repository_by_deploy_target(db: AsyncSession, service_name: str | None) -> Repository | None:
    if not service_name:
        return None
    result = await db.execute(select(Repository).where(Repository.deploy_target == service_name))
    return result.scalars().first()


async def active_delivery_streams(db: AsyncSession) -> list[DeliveryStream]:
    result = await db.execute(
        select(DeliveryStream).where(DeliveryStream.is_active == True).order_by(DeliveryStream.name)  # noqa: E712
    )
    return list(result.scalars().all())


async def active_tech_streams(db: AsyncSession) -> list[TechStream]:
    result = await db.execute(
        select(TechStream).where(TechStream.is_active == True).order_by(TechStream.name)  # noqa: E712
    )
    return list(result.scalars().all())
