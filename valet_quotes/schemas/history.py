from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from valet_quotes.core.enums import ServiceType, VehicleCategory, DurationBand


class HistoricalQuoteCreate(BaseModel):
    service_type: ServiceType
    vehicle_category: VehicleCategory = VehicleCategory.STANDARD
    location: str = Field(..., min_length=1, max_length=255)
    duration_band: DurationBand
    quoted_price: float = Field(..., gt=0)
    final_price: float = Field(..., ge=0)
    accepted: bool
    conversion_time_seconds: int = Field(0, ge=0)
    satisfaction_score: Optional[float] = Field(None, ge=0, le=5)
    date: Optional[datetime] = None


class HistoricalQuoteRecord(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    date: datetime
    service_type: ServiceType
    vehicle_category: VehicleCategory
    location: str
    duration_band: DurationBand
    quoted_price: float
    final_price: float
    accepted: bool
    conversion_time_seconds: int = 0
    satisfaction_score: Optional[float] = None


class HistoryFilters(BaseModel):
    service_type: Optional[ServiceType] = None
    vehicle_category: Optional[VehicleCategory] = None
    accepted: Optional[bool] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class TrainingRow(BaseModel):
    input: dict
    output: dict
    metadata: dict
