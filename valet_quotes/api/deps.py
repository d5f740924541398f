from typing import Optional
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from valet_quotes.db.session import get_db
from valet_quotes.services.history import HistoricalStore, SqlHistoricalStore
from valet_quotes.services.estimator import PriceEstimator, build_estimator
from valet_quotes.services.quoting import QuoteService


async def get_history_store(db: AsyncSession = Depends(get_db)) -> HistoricalStore:
    return SqlHistoricalStore(db)


def get_estimator() -> Optional[PriceEstimator]:
    return build_estimator()


async def get_quote_service(
    store: HistoricalStore = Depends(get_history_store),
    estimator: Optional[PriceEstimator] = Depends(get_estimator),
) -> QuoteService:
    return QuoteService(store, estimator)
