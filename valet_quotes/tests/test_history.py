import math
import pytest
from datetime import timedelta

from valet_quotes.core.enums import ServiceType, VehicleCategory, DurationBand
from valet_quotes.schemas.history import HistoricalQuoteCreate, HistoryFilters
from valet_quotes.schemas.quote import QuoteRequest
from valet_quotes.services.history import (
    InMemoryHistoricalStore,
    SqlHistoricalStore,
    predict_price,
    similarity_weight,
    training_rows,
)


def _create(**kwargs):
    data = {
        "service_type": ServiceType.EVENT,
        "vehicle_category": VehicleCategory.STANDARD,
        "location": "Maple Grove residential area",
        "duration_band": DurationBand.ONE_TO_TWO,
        "quoted_price": 55.0,
        "final_price": 52.0,
        "accepted": True,
    }
    data.update(kwargs)
    return HistoricalQuoteCreate(**data)


@pytest.mark.history
class TestSimilarityPredictor:

    def test_empty_history_returns_none(self, event_request, neutral_now):
        assert predict_price([], event_request, neutral_now) is None

    def test_non_matching_history_returns_none(self, event_request, neutral_now, make_record):
        records = [
            make_record(service_type=ServiceType.HOTEL),
            make_record(vehicle_category=VehicleCategory.LUXURY),
            make_record(accepted=False),
        ]
        assert predict_price(records, event_request, neutral_now) is None

    def test_single_record(self, event_request, neutral_now, make_record):
        prediction = predict_price([make_record(final_price=58.0)], event_request, neutral_now)

        assert prediction.predicted_price == 58
        assert prediction.sample_size == 1
        assert prediction.confidence == pytest.approx(0.1)
        assert prediction.factors == (
            "Based on 1 similar historical quotes",
            "Average success rate: 100.0%",
        )

    def test_recent_records_dominate(self, event_request, neutral_now, make_record):
        records = [
            make_record(days_ago=1, final_price=60.0),
            make_record(days_ago=120, final_price=30.0),
        ]
        prediction = predict_price(records, event_request, neutral_now)

        w_recent = math.exp(-1 / 30)
        w_old = math.exp(-120 / 30)
        expected = (60 * w_recent + 30 * w_old) / (w_recent + w_old)
        assert prediction.predicted_price == round(expected)
        assert prediction.predicted_price >= 58

    def test_confidence_is_capped(self, event_request, neutral_now, make_record):
        records = [make_record(days_ago=i + 1) for i in range(25)]
        prediction = predict_price(records, event_request, neutral_now)

        assert prediction.confidence == 0.95
        assert prediction.sample_size == 25

    def test_duration_and_location_weighting(self, event_request, neutral_now, make_record):
        same = make_record(days_ago=0)
        other_band = make_record(days_ago=0, duration_band=DurationBand.EIGHT_PLUS)
        other_place = make_record(days_ago=0, location="Hilltop ranch")

        assert similarity_weight(same, event_request, neutral_now) == pytest.approx(1.5 * 1.3)
        assert similarity_weight(other_band, event_request, neutral_now) == pytest.approx(0.8 * 1.3)
        assert similarity_weight(other_place, event_request, neutral_now) == pytest.approx(1.5)

    def test_all_weights_decayed_to_zero(self, event_request, neutral_now, make_record):
        records = [make_record(days_ago=100000)]
        assert predict_price(records, event_request, neutral_now) is None


@pytest.mark.history
class TestInMemoryStore:

    @pytest.mark.asyncio
    async def test_record_assigns_ids_and_dates(self, memory_store):
        first = await memory_store.record(_create())
        second = await memory_store.record(_create(accepted=False))

        assert first.id == 1
        assert second.id == 2
        assert first.date.tzinfo is not None

    @pytest.mark.asyncio
    async def test_ids_continue_after_seeded_records(self, make_record):
        store = InMemoryHistoricalStore([make_record(id=5), make_record(id=9), make_record(id=2)])

        created = await store.record(_create())

        assert created.id == 10
        assert len({r.id for r in await store.query()}) == 4

    @pytest.mark.asyncio
    async def test_duplicates_are_kept(self, memory_store):
        await memory_store.record(_create())
        await memory_store.record(_create())
        assert len(await memory_store.query()) == 2

    @pytest.mark.asyncio
    async def test_query_filters(self, make_record, neutral_now):
        store = InMemoryHistoricalStore([
            make_record(days_ago=1),
            make_record(days_ago=5, service_type=ServiceType.HOTEL),
            make_record(days_ago=10, accepted=False),
            make_record(days_ago=40, vehicle_category=VehicleCategory.EXOTIC),
        ])

        assert len(await store.query(HistoryFilters(service_type=ServiceType.EVENT))) == 3
        assert len(await store.query(HistoryFilters(accepted=False))) == 1
        assert len(await store.query(HistoryFilters(vehicle_category=VehicleCategory.EXOTIC))) == 1
        recent = await store.query(HistoryFilters(start=neutral_now - timedelta(days=7)))
        assert [r.id for r in recent] == [1, 2]

    @pytest.mark.asyncio
    async def test_query_pagination(self, make_record):
        store = InMemoryHistoricalStore([make_record(days_ago=i) for i in range(5)])
        page = await store.query(limit=2, offset=1)
        assert [r.id for r in page] == [2, 3]

    @pytest.mark.asyncio
    async def test_predict_uses_matching_records(self, make_record, event_request, neutral_now):
        store = InMemoryHistoricalStore([
            make_record(final_price=54.0),
            make_record(final_price=200.0, service_type=ServiceType.CORPORATE),
        ])
        prediction = await store.predict(event_request, neutral_now)
        assert prediction.predicted_price == 54
        assert prediction.sample_size == 1

    @pytest.mark.asyncio
    async def test_predict_on_empty_store(self, memory_store, event_request):
        assert await memory_store.predict(event_request) is None


@pytest.mark.history
@pytest.mark.integration
class TestSqlStore:

    @pytest.mark.asyncio
    async def test_append_and_query(self, sql_session, neutral_now):
        store = SqlHistoricalStore(sql_session)
        created = await store.record(_create(date=neutral_now, satisfaction_score=4.5))

        assert created.id == 1
        assert created.service_type == ServiceType.EVENT
        assert created.satisfaction_score == 4.5

        rows = await store.query()
        assert len(rows) == 1
        assert rows[0].final_price == 52.0

    @pytest.mark.asyncio
    async def test_filters_and_pagination(self, sql_session, neutral_now):
        store = SqlHistoricalStore(sql_session)
        for i in range(4):
            await store.record(_create(date=neutral_now - timedelta(days=i), accepted=i % 2 == 0))
        await store.record(_create(date=neutral_now, service_type=ServiceType.HOTEL))

        accepted = await store.query(HistoryFilters(service_type=ServiceType.EVENT, accepted=True))
        assert len(accepted) == 2

        page = await store.query(limit=2, offset=2)
        assert [r.id for r in page] == [3, 4]

    @pytest.mark.asyncio
    async def test_predict_from_database(self, sql_session, neutral_now):
        store = SqlHistoricalStore(sql_session)
        await store.record(_create(date=neutral_now - timedelta(days=1), final_price=56.0))

        req = QuoteRequest(
            service_type="event",
            vehicle_category="standard",
            location="Maple Grove",
            duration_band="1-2",
        )
        prediction = await store.predict(req, neutral_now)
        assert prediction.predicted_price == 56


class TestTrainingRows:

    def test_row_shape(self, make_record):
        rows = training_rows([
            make_record(quoted_price=60.0, final_price=55.0, satisfaction_score=4.5),
            make_record(accepted=False, satisfaction_score=None),
        ])

        assert rows[0].input["service_type"] == "event"
        assert rows[0].input["duration_band"] == "1-2"
        assert rows[0].output["price"] == 55.0
        assert rows[0].metadata["price_adjustment"] == -5.0
        assert rows[0].metadata["success"] is True
        assert rows[1].metadata["success"] is False
