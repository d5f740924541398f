"""Append-only store of quote outcomes and the similarity predictor built on it"""
import math
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from valet_quotes.models.historical_quote import HistoricalQuote
from valet_quotes.schemas.history import HistoricalQuoteCreate, HistoricalQuoteRecord, HistoryFilters, TrainingRow
from valet_quotes.schemas.quote import QuoteRequest, HistoricalPrediction
from valet_quotes.core.metrics import track_db_operation, historical_records_created
from valet_quotes.services.pricing import round_currency

logger = logging.getLogger(__name__)

DURATION_MATCH_WEIGHT = 1.5
DURATION_MISMATCH_WEIGHT = 0.8
LOCATION_MATCH_WEIGHT = 1.3
DECAY_DAYS = 30.0
MAX_CONFIDENCE = 0.95
FULL_CONFIDENCE_SAMPLES = 10


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def matches(record: HistoricalQuoteRecord, filters: HistoryFilters) -> bool:
    if filters.service_type is not None and record.service_type != filters.service_type:
        return False
    if filters.vehicle_category is not None and record.vehicle_category != filters.vehicle_category:
        return False
    if filters.accepted is not None and record.accepted != filters.accepted:
        return False
    if filters.start is not None and as_utc(record.date) < as_utc(filters.start):
        return False
    if filters.end is not None and as_utc(record.date) > as_utc(filters.end):
        return False
    return True


def _leading_token(location: str) -> str:
    tokens = location.lower().split()
    return tokens[0] if tokens else ""


def similarity_weight(record: HistoricalQuoteRecord, req: QuoteRequest, now: datetime) -> float:
    weight = 1.0
    weight *= DURATION_MATCH_WEIGHT if record.duration_band == req.duration_band else DURATION_MISMATCH_WEIGHT

    token = _leading_token(req.location)
    if token and token in record.location.lower():
        weight *= LOCATION_MATCH_WEIGHT

    age_days = abs((as_utc(now) - as_utc(record.date)).total_seconds()) / 86400
    weight *= math.exp(-age_days / DECAY_DAYS)
    return weight


def predict_price(
    records: Sequence[HistoricalQuoteRecord],
    req: QuoteRequest,
    now: Optional[datetime] = None,
) -> Optional[HistoricalPrediction]:
    """Time-decayed weighted average of accepted prices for the same service
    type and vehicle category. Returns None when nothing comparable exists."""
    now = now or datetime.now(timezone.utc)
    similar = [
        r for r in records
        if r.service_type == req.service_type and r.vehicle_category == req.vehicle_category and r.accepted
    ]
    if not similar:
        return None

    total_weight = 0.0
    weighted_sum = 0.0
    for record in similar:
        weight = similarity_weight(record, req, now)
        total_weight += weight
        weighted_sum += record.final_price * weight

    if total_weight == 0:
        logger.debug(f"All {len(similar)} similar records decayed to zero weight")
        return None

    predicted = weighted_sum / total_weight
    success_rate = sum(1 for r in similar if r.accepted) / len(similar)
    return HistoricalPrediction(
        predicted_price=round_currency(predicted),
        confidence=min(MAX_CONFIDENCE, len(similar) / FULL_CONFIDENCE_SAMPLES),
        sample_size=len(similar),
        factors=(
            f"Based on {len(similar)} similar historical quotes",
            f"Average success rate: {success_rate * 100:.1f}%",
        ),
    )


def training_rows(records: Sequence[HistoricalQuoteRecord]) -> List[TrainingRow]:
    rows = []
    for r in records:
        rows.append(TrainingRow(
            input={
                "service_type": str(r.service_type),
                "vehicle_category": str(r.vehicle_category),
                "duration_band": str(r.duration_band),
                "location": r.location,
                "date": r.date.date().isoformat(),
            },
            output={
                "price": r.final_price,
                "accepted": r.accepted,
                "conversion_time_seconds": r.conversion_time_seconds,
                "satisfaction": r.satisfaction_score,
            },
            metadata={
                "original_quote": r.quoted_price,
                "price_adjustment": r.final_price - r.quoted_price,
                "success": r.accepted and (r.satisfaction_score or 0) >= 4.0,
            },
        ))
    return rows


class HistoricalStore(ABC):

    @abstractmethod
    async def append(self, payload: HistoricalQuoteCreate) -> HistoricalQuoteRecord:
        ...

    @abstractmethod
    async def query(
        self,
        filters: Optional[HistoryFilters] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[HistoricalQuoteRecord]:
        ...

    async def record(self, payload: HistoricalQuoteCreate) -> HistoricalQuoteRecord:
        """Append a known outcome; no dedup."""
        record = await self.append(payload)
        historical_records_created.labels(
            service_type=str(record.service_type),
            accepted=str(record.accepted).lower(),
        ).inc()
        return record

    async def predict(self, req: QuoteRequest, now: Optional[datetime] = None) -> Optional[HistoricalPrediction]:
        records = await self.query(HistoryFilters(
            service_type=req.service_type,
            vehicle_category=req.vehicle_category,
            accepted=True,
        ))
        return predict_price(records, req, now)


class InMemoryHistoricalStore(HistoricalStore):

    def __init__(self, records: Optional[Sequence[HistoricalQuoteRecord]] = None):
        self._records: List[HistoricalQuoteRecord] = list(records or [])

    async def append(self, payload: HistoricalQuoteCreate) -> HistoricalQuoteRecord:
        data = payload.model_dump()
        data["date"] = data["date"] or datetime.now(timezone.utc)
        next_id = max((r.id for r in self._records), default=0) + 1
        record = HistoricalQuoteRecord(id=next_id, **data)
        self._records.append(record)
        return record

    async def query(
        self,
        filters: Optional[HistoryFilters] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[HistoricalQuoteRecord]:
        filters = filters or HistoryFilters()
        found = [r for r in self._records if matches(r, filters)]
        if limit is None:
            return found[offset:]
        return found[offset:offset + limit]


class SqlHistoricalStore(HistoricalStore):

    def __init__(self, db: AsyncSession):
        self.db = db

    @track_db_operation("insert", "historical_quotes")
    async def append(self, payload: HistoricalQuoteCreate) -> HistoricalQuoteRecord:
        data = payload.model_dump()
        data["date"] = data["date"] or datetime.now(timezone.utc)
        row = HistoricalQuote(**data)
        self.db.add(row)
        await self.db.commit()
        await self.db.refresh(row)
        return HistoricalQuoteRecord.model_validate(row)

    @track_db_operation("select", "historical_quotes")
    async def query(
        self,
        filters: Optional[HistoryFilters] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[HistoricalQuoteRecord]:
        filters = filters or HistoryFilters()
        q = select(HistoricalQuote)

        if filters.service_type is not None:
            q = q.where(HistoricalQuote.service_type == filters.service_type)
        if filters.vehicle_category is not None:
            q = q.where(HistoricalQuote.vehicle_category == filters.vehicle_category)
        if filters.accepted is not None:
            q = q.where(HistoricalQuote.accepted == filters.accepted)
        if filters.start is not None:
            q = q.where(HistoricalQuote.date >= filters.start)
        if filters.end is not None:
            q = q.where(HistoricalQuote.date <= filters.end)

        q = q.order_by(HistoricalQuote.id).offset(offset)
        if limit is not None:
            q = q.limit(limit)
        res = await self.db.execute(q)
        return [HistoricalQuoteRecord.model_validate(row) for row in res.scalars().all()]
