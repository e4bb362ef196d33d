"""Contact group service - groups and membership."""

from __future__ import annotations

import uuid
from typing import Iterable

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.contact import Contact, ContactGroup, ContactGroupMember


async def list_groups(db: AsyncSession, user_id: uuid.UUID) -> list[ContactGroup]:
    stmt = select(ContactGroup).where(ContactGroup.user_id == user_id).order_by(ContactGroup.name)
    return list((await db.execute(stmt)).scalars().all())


async def get_group(
    db: AsyncSession, user_id: uuid.UUID, group_id: uuid.UUID
) -> ContactGroup | None:
    stmt = select(ContactGroup).where(ContactGroup.id == group_id, ContactGroup.user_id == user_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def create_group(
    db: AsyncSession, user_id: uuid.UUID, name: str, description: str | None = None
) -> ContactGroup:
    group = ContactGroup(user_id=user_id, name=name, description=description, contact_count=0)
    db.add(group)
    await db.commit()
    await db.refresh(group)
    return group


async def update_group(
    db: AsyncSession, user_id: uuid.UUID, group_id: uuid.UUID, **kwargs
) -> ContactGroup | None:
    group = await get_group(db, user_id, group_id)
    if not group:
        return None
    for key, value in kwargs.items():
        setattr(group, key, value)
    await db.commit()
    await db.refresh(group)
    return group


async def delete_group(db: AsyncSession, user_id: uuid.UUID, group_id: uuid.UUID) -> bool:
    group = await get_group(db, user_id, group_id)
    if not group:
        return False
    await db.execute(delete(ContactGroupMember).where(ContactGroupMember.group_id == group_id))
    await db.delete(group)
    await db.commit()
    return True


async def groups_for_contacts(db: AsyncSession, contact_ids: list[uuid.UUID]) -> list[uuid.UUID]:
    stmt = select(ContactGroupMember.group_id).where(
        ContactGroupMember.contact_id.in_(contact_ids)
    ).distinct()
    return list((await db.execute(stmt)).scalars().all())


async def refresh_counts(db: AsyncSession, group_ids: Iterable[uuid.UUID]) -> None:
    """Recompute contact_count from membership rows. Does not commit."""
    for group_id in set(group_ids):
        count = (await db.execute(
            select(func.count()).select_from(ContactGroupMember).where(
                ContactGroupMember.group_id == group_id
            )
        )).scalar() or 0
        await db.execute(
            update(ContactGroup).where(ContactGroup.id == group_id).values(contact_count=count)
        )


async def add_members(
    db: AsyncSession, user_id: uuid.UUID, group_id: uuid.UUID, contact_ids: list[uuid.UUID]
) -> int | None:
    """Add contacts to a group, skipping existing members. Returns the number added."""
    group = await get_group(db, user_id, group_id)
    if not group:
        return None
    owned = set((await db.execute(
        select(Contact.id).where(Contact.user_id == user_id, Contact.id.in_(contact_ids))
    )).scalars().all())
    present = set((await db.execute(
        select(ContactGroupMember.contact_id).where(ContactGroupMember.group_id == group_id)
    )).scalars().all())

    added = 0
    for contact_id in contact_ids:
        if contact_id in owned and contact_id not in present:
            db.add(ContactGroupMember(group_id=group_id, contact_id=contact_id))
            present.add(contact_id)
            added += 1
    await db.flush()
    await refresh_counts(db, [group_id])
    await db.commit()
    await db.refresh(group)
    return added


async def remove_member(
    db: AsyncSession, user_id: uuid.UUID, group_id: uuid.UUID, contact_id: uuid.UUID
) -> bool:
    group = await get_group(db, user_id, group_id)
    if not group:
        return False
    result = await db.execute(
        delete(ContactGroupMember).where(
            ContactGroupMember.group_id == group_id,
            ContactGroupMember.contact_id == contact_id,
        )
    )
    await refresh_counts(db, [group_id])
    await db.commit()
    return bool(result.rowcount)


async def list_members(
    db: AsyncSession, user_id: uuid.UUID, group_id: uuid.UUID
) -> list[Contact] | None:
    group = await get_group(db, user_id, group_id)
    if not group:
        return None
    stmt = (
        select(Contact)
        .join(ContactGroupMember, ContactGroupMember.contact_id == Contact.id)
        .where(ContactGroupMember.group_id == group_id)
        .order_by(ContactGroupMember.added_at)
    )
    return list((await db.execute(stmt)).scalars().all())


async def member_phones(
    db: AsyncSession, user_id: uuid.UUID, group_ids: list[uuid.UUID]
) -> list[str]:
    """Phones of active members across the given groups."""
    if not group_ids:
        return []
    stmt = (
        select(Contact.phone)
        .join(ContactGroupMember, ContactGroupMember.contact_id == Contact.id)
        .join(ContactGroup, ContactGroup.id == ContactGroupMember.group_id)
        .where(
            ContactGroup.user_id == user_id,
            ContactGroupMember.group_id.in_(group_ids),
            Contact.is_active.is_(True),
            Contact.phone.is_not(None),
        )
    )
    return list((await db.execute(stmt)).scalars().all())
