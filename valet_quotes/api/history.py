"""Historical quote outcomes: recording, listing and prediction"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query

from valet_quotes.schemas.history import HistoricalQuoteCreate, HistoricalQuoteRecord, HistoryFilters, TrainingRow
from valet_quotes.schemas.quote import QuoteRequest, HistoricalPrediction
from valet_quotes.core.enums import ServiceType, VehicleCategory
from valet_quotes.services.history import HistoricalStore, training_rows
from valet_quotes.utils.idempotency import get_idempotent, set_idempotent
from valet_quotes.api.deps import get_history_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/history", tags=["history"])


@router.post("/", response_model=HistoricalQuoteRecord)
async def record_outcome(
    payload: HistoricalQuoteCreate,
    idempotency_key: Optional[str] = Header(None),
    store: HistoricalStore = Depends(get_history_store),
):
    if idempotency_key:
        prev = await get_idempotent(idempotency_key)
        if prev:
            return prev

    record = await store.record(payload)
    logger.info(f"Recorded {record.service_type} outcome #{record.id} (accepted={record.accepted})")

    if idempotency_key:
        await set_idempotent(idempotency_key, record.model_dump(mode="json"))
    return record


@router.get("/", response_model=List[HistoricalQuoteRecord])
async def list_outcomes(
    service_type: Optional[ServiceType] = Query(None),
    vehicle_category: Optional[VehicleCategory] = Query(None),
    accepted: Optional[bool] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    store: HistoricalStore = Depends(get_history_store),
):
    filters = HistoryFilters(
        service_type=service_type,
        vehicle_category=vehicle_category,
        accepted=accepted,
        start=start,
        end=end,
    )
    return await store.query(filters, limit=limit, offset=offset)


@router.post("/predict", response_model=Optional[HistoricalPrediction])
async def predict(req: QuoteRequest, store: HistoricalStore = Depends(get_history_store)):
    return await store.predict(req)


@router.get("/training-data", response_model=List[TrainingRow])
async def training_data(
    service_type: Optional[ServiceType] = Query(None),
    store: HistoricalStore = Depends(get_history_store),
):
    records = await store.query(HistoryFilters(service_type=service_type))
    return training_rows(records)
