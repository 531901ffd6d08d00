"""
Airline / airport catalog used by trips.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select, update

from app.api.deps import CurrentUser, DbSession
from app.models.trip import AirlineAndAirport, Trip

router = APIRouter()


class AirlineAndAirportCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1)


class AirlineAndAirportUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1)


class AirlineAndAirportResponse(BaseModel):
    id: int
    code: str
    name: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


async def _get_or_404(db, item_id: int) -> AirlineAndAirport:
    item = await db.get(AirlineAndAirport, item_id)
    if not item:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Airline/airport not found",
        )
    return item


async def _ensure_code_free(db, code: str, exclude_id: Optional[int] = None) -> None:
    query = select(AirlineAndAirport.id).where(AirlineAndAirport.code == code)
    if exclude_id is not None:
        query = query.where(AirlineAndAirport.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Code '{code}' already exists",
        )


@router.get("", response_model=List[AirlineAndAirportResponse])
async def list_airline_and_airports(db: DbSession, user: CurrentUser):
    result = await db.execute(select(AirlineAndAirport).order_by(AirlineAndAirport.code))
    return [AirlineAndAirportResponse.model_validate(a) for a in result.scalars().all()]


@router.post("", response_model=AirlineAndAirportResponse, status_code=status.HTTP_201_CREATED)
async def create_airline_and_airport(data: AirlineAndAirportCreate, db: DbSession, user: CurrentUser):
    code = data.code.strip().upper()
    await _ensure_code_free(db, code)
    item = AirlineAndAirport(code=code, name=data.name.strip())
    db.add(item)
    await db.commit()
    return AirlineAndAirportResponse.model_validate(item)


@router.get("/{item_id}", response_model=AirlineAndAirportResponse)
async def get_airline_and_airport(item_id: int, db: DbSession, user: CurrentUser):
    return AirlineAndAirportResponse.model_validate(await _get_or_404(db, item_id))


@router.put("/{item_id}", response_model=AirlineAndAirportResponse)
async def update_airline_and_airport(
    item_id: int,
    data: AirlineAndAirportUpdate,
    db: DbSession,
    user: CurrentUser,
):
    item = await _get_or_404(db, item_id)
    if data.code is not None:
        code = data.code.strip().upper()
        if code != item.code:
            await _ensure_code_free(db, code, exclude_id=item.id)
        item.code = code
    if data.name is not None:
        item.name = data.name.strip()
    await db.commit()
    return AirlineAndAirportResponse.model_validate(item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_airline_and_airport(item_id: int, db: DbSession, user: CurrentUser):
    """Delete an entry; trips flying with it are detached."""
    item = await _get_or_404(db, item_id)
    await db.execute(
        update(Trip)
        .where(Trip.airline_and_airport_id == item.id)
        .values(airline_and_airport_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.delete(item)
    await db.commit()
