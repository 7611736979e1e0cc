"""Bin API — sensor readings in, bin state out.

- PATCH /bins/fill-level → sensor reports a fill percentage (open)
- GET /bins?sensorId= → one bin's public fields (bearer token)
- GET /bins/all → every bin (bearer token)

The PATCH handler only writes. The realtime broadcast happens later, when
the change feed sees the committed write.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ewaste.auth.dependencies import get_current_user
from ewaste.db.engine import get_db
from ewaste.schemas.bin import BinRead, FillLevelUpdate
from ewaste.services.bin_service import BinService

router = APIRouter(prefix="/bins")


@router.patch("/fill-level", response_model=BinRead)
async def update_fill_level(body: FillLevelUpdate, db: AsyncSession = Depends(get_db)):
    bin_ = await BinService(db).update_fill_level(body.sensor_id, body.percentage)
    return BinRead.model_validate(bin_)


@router.get("", response_model=BinRead, dependencies=[Depends(get_current_user)])
async def get_bin(
    sensor_id: str = Query(..., alias="sensorId"),
    db: AsyncSession = Depends(get_db),
):
    bin_ = await BinService(db).get_by_sensor_id(sensor_id)
    return BinRead.model_validate(bin_)


@router.get("/all", response_model=list[BinRead], dependencies=[Depends(get_current_user)])
async def list_bins(db: AsyncSession = Depends(get_db)):
    return [BinRead.model_validate(b) for b in await BinService(db).list_bins()]
