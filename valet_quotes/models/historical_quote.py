from sqlalchemy import Column, String, Float, Integer, Boolean, DateTime, Enum
from valet_quotes.models.base import BaseModel
from valet_quotes.core.enums import ServiceType, VehicleCategory, DurationBand


class HistoricalQuote(BaseModel):
    __tablename__ = "historical_quotes"

    date = Column(DateTime(timezone=True), nullable=False, index=True)
    service_type = Column(Enum(ServiceType), nullable=False, index=True)
    vehicle_category = Column(Enum(VehicleCategory), nullable=False)
    location = Column(String(255), nullable=False)
    duration_band = Column(Enum(DurationBand), nullable=False)
    quoted_price = Column(Float, nullable=False)
    final_price = Column(Float, nullable=False)
    accepted = Column(Boolean, nullable=False)
    conversion_time_seconds = Column(Integer, nullable=False, default=0)
    satisfaction_score = Column(Float, nullable=True)
