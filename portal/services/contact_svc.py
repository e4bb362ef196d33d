"""Contact service - CRUD, search, bulk import and validation."""

from __future__ import annotations

import uuid

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.contact import Contact, ContactGroupMember
from ..validation import validate_email, validate_phone


class ContactValidationError(ValueError):
    pass


def _clean_fields(data: dict) -> dict:
    """Normalize phone/email on a create or update payload."""
    cleaned = dict(data)
    if "phone" in cleaned and cleaned["phone"] not in (None, ""):
        result = validate_phone(cleaned["phone"])
        if not result.is_valid:
            raise ContactValidationError(result.error_message)
        cleaned["phone"] = result.formatted_number
    if "email" in cleaned:
        email = (cleaned["email"] or "").strip() or None
        ok, error = validate_email(email)
        if not ok:
            raise ContactValidationError(error)
        cleaned["email"] = email
    return cleaned


async def list_contacts(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    search: str | None = None,
    group_id: uuid.UUID | None = None,
    active: bool | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[Contact], int]:
    """List contacts with optional search and pagination. Returns (contacts, total)."""
    stmt = select(Contact).where(Contact.user_id == user_id)

    if search:
        q = f"%{search}%"
        stmt = stmt.where(
            or_(
                Contact.first_name.ilike(q),
                Contact.last_name.ilike(q),
                Contact.email.ilike(q),
                Contact.phone.ilike(q),
            )
        )
    if group_id:
        stmt = stmt.join(
            ContactGroupMember, ContactGroupMember.contact_id == Contact.id
        ).where(ContactGroupMember.group_id == group_id)
    if active is not None:
        stmt = stmt.where(Contact.is_active == active)

    count_stmt = select(func.count()).select_from(stmt.subquery())
    total = (await db.execute(count_stmt)).scalar() or 0

    stmt = stmt.order_by(Contact.created_at.desc()).offset(offset).limit(limit)
    contacts = list((await db.execute(stmt)).scalars().all())
    return contacts, total


async def get_contact(
    db: AsyncSession, user_id: uuid.UUID, contact_id: uuid.UUID
) -> Contact | None:
    stmt = select(Contact).where(Contact.id == contact_id, Contact.user_id == user_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def create_contact(db: AsyncSession, user_id: uuid.UUID, **kwargs) -> Contact:
    contact = Contact(user_id=user_id, **_clean_fields(kwargs))
    db.add(contact)
    await db.commit()
    await db.refresh(contact)
    return contact


async def update_contact(
    db: AsyncSession, user_id: uuid.UUID, contact_id: uuid.UUID, **kwargs
) -> Contact | None:
    contact = await get_contact(db, user_id, contact_id)
    if not contact:
        return None
    for key, value in _clean_fields(kwargs).items():
        setattr(contact, key, value)
    await db.commit()
    await db.refresh(contact)
    return contact


async def delete_contact(db: AsyncSession, user_id: uuid.UUID, contact_id: uuid.UUID) -> bool:
    contact = await get_contact(db, user_id, contact_id)
    if not contact:
        return False
    from . import group_svc

    group_ids = await group_svc.groups_for_contacts(db, [contact_id])
    await db.execute(delete(ContactGroupMember).where(ContactGroupMember.contact_id == contact_id))
    await db.delete(contact)
    await db.flush()
    await group_svc.refresh_counts(db, group_ids)
    await db.commit()
    return True


async def bulk_delete(
    db: AsyncSession, user_id: uuid.UUID, contact_ids: list[uuid.UUID]
) -> int:
    if not contact_ids:
        return 0
    from . import group_svc

    owned = (await db.execute(
        select(Contact.id).where(Contact.user_id == user_id, Contact.id.in_(contact_ids))
    )).scalars().all()
    if not owned:
        return 0
    group_ids = await group_svc.groups_for_contacts(db, list(owned))
    await db.execute(delete(ContactGroupMember).where(ContactGroupMember.contact_id.in_(owned)))
    await db.execute(delete(Contact).where(Contact.id.in_(owned)))
    await group_svc.refresh_counts(db, group_ids)
    await db.commit()
    return len(owned)


async def bulk_create(
    db: AsyncSession, user_id: uuid.UUID, rows: list[dict]
) -> dict:
    """Create contacts from uploaded rows.

    Rows with an invalid phone or email are rejected; rows whose phone
    already exists for the user (or earlier in the batch) are skipped.
    """
    existing = set(
        (await db.execute(
            select(Contact.phone).where(Contact.user_id == user_id, Contact.phone.is_not(None))
        )).scalars().all()
    )
    created = 0
    duplicates = 0
    errors: list[dict] = []
    for index, row in enumerate(rows):
        fields = {
            key: row.get(key)
            for key in ("first_name", "last_name", "phone", "email", "tags")
            if row.get(key) not in (None, "")
        }
        try:
            fields = _clean_fields(fields)
        except ContactValidationError as exc:
            errors.append({"row": index + 1, "error": str(exc)})
            continue
        phone = fields.get("phone")
        if phone and phone in existing:
            duplicates += 1
            continue
        if phone:
            existing.add(phone)
        db.add(Contact(user_id=user_id, **fields))
        created += 1

    await db.commit()
    return {"created": created, "duplicates": duplicates, "invalid": len(errors), "errors": errors}


def _validate_one(contact: Contact, validation_type: str) -> dict:
    result: dict = {
        "contact_id": str(contact.id),
        "phone": contact.phone,
        "email": contact.email,
        "is_valid": True,
        "errors": [],
    }
    if validation_type in ("phone", "all"):
        phone = validate_phone(contact.phone)
        result["formatted_phone"] = phone.formatted_number
        if not phone.is_valid:
            result["is_valid"] = False
            result["errors"].append(phone.error_message)
    if validation_type in ("email", "all"):
        ok, error = validate_email(contact.email)
        if not ok:
            result["is_valid"] = False
            result["errors"].append(error)
    return result


async def validate_contacts(
    db: AsyncSession,
    user_id: uuid.UUID,
    contact_ids: list[uuid.UUID],
    validation_type: str = "all",
) -> dict:
    """Check stored phones/emails. Returns ``{summary, results}``."""
    if validation_type not in ("phone", "email", "all"):
        raise ContactValidationError(f"Unknown validation type: {validation_type}")
    stmt = select(Contact).where(Contact.user_id == user_id)
    if contact_ids:
        stmt = stmt.where(Contact.id.in_(contact_ids))
    contacts = (await db.execute(stmt)).scalars().all()

    results = [_validate_one(contact, validation_type) for contact in contacts]
    valid = sum(1 for r in results if r["is_valid"])
    return {
        "summary": {"total": len(results), "valid": valid, "invalid": len(results) - valid},
        "results": results,
    }
