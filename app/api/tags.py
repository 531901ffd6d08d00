"""
Customer tag endpoints.
"""

from typing import List

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select, func

from app.api.deps import CurrentUser, DbSession
from app.models.customer import customer_tags
from app.models.tag import Tag

router = APIRouter()


class TagCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class TagResponse(BaseModel):
    id: int
    name: str
    customer_count: int = 0

    model_config = ConfigDict(from_attributes=True)


async def _get_tag_or_404(db, tag_id: int) -> Tag:
    tag = await db.get(Tag, tag_id)
    if not tag:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tag not found",
        )
    return tag


async def _ensure_name_free(db, name: str, exclude_id: int | None = None) -> None:
    query = select(Tag.id).where(func.lower(Tag.name) == name.lower())
    if exclude_id is not None:
        query = query.where(Tag.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Tag '{name}' already exists",
        )


@router.get("", response_model=List[TagResponse])
async def list_tags(db: DbSession, user: CurrentUser):
    """All tags with the number of customers carrying each."""
    result = await db.execute(
        select(Tag, func.count(customer_tags.c.customer_id))
        .outerjoin(customer_tags, customer_tags.c.tag_id == Tag.id)
        .group_by(Tag.id)
        .order_by(Tag.name)
    )
    return [
        TagResponse(id=tag.id, name=tag.name, customer_count=count)
        for tag, count in result.all()
    ]


@router.post("", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_tag(data: TagCreate, db: DbSession, user: CurrentUser):
    name = data.name.strip()
    await _ensure_name_free(db, name)
    tag = Tag(name=name)
    db.add(tag)
    await db.commit()
    return TagResponse(id=tag.id, name=tag.name)


@router.put("/{tag_id}", response_model=TagResponse)
async def update_tag(tag_id: int, data: TagCreate, db: DbSession, user: CurrentUser):
    tag = await _get_tag_or_404(db, tag_id)
    name = data.name.strip()
    await _ensure_name_free(db, name, exclude_id=tag.id)
    tag.name = name
    await db.commit()
    return TagResponse(id=tag.id, name=tag.name)


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(tag_id: int, db: DbSession, user: CurrentUser):
    tag = await _get_tag_or_404(db, tag_id)
    await db.execute(customer_tags.delete().where(customer_tags.c.tag_id == tag.id))
    await db.delete(tag)
    await db.commit()
