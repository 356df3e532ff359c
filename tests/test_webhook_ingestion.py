import unittest
from unittest.mock import patch

from courier_desk import create_app
from courier_desk.config import Config
from courier_desk.contexts.dispatch.application.webhook_service import WebhookIngestionService
from courier_desk.contexts.dispatch.infrastructure.repositories import DeliveryRepository, WebhookEventRepository
from courier_desk.core import DeliveryStatusChanged, EventBus
from courier_desk.db import close_db, get_db
from courier_desk.infrastructure.repositories.base import normalize_timestamp
from courier_desk.routes import webhook_routes
from tests.helpers.temp_db import TempDbSandbox


def _status_event(status: str, *, delivery_id: str = "del_abc", created: str | None = None) -> dict:
    event = {"event_type": "delivery.status_changed", "delivery_id": delivery_id, "status": status}
    if created is not None:
        event["created"] = created
    return event


class WebhookIngestionTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="webhook_ingest")
        self.app = create_app(self._temp_db.make_config(Config))
        self.ctx = self.app.app_context()
        self.ctx.push()
        self.db = get_db()
        self.bus = EventBus()
        self.published = []
        self.bus.subscribe(DeliveryStatusChanged, self.published.append)
        self.service = WebhookIngestionService(event_bus=self.bus)
        self.deliveries = DeliveryRepository()
        self.events = WebhookEventRepository()
        self.deliveries.create(
            self.db,
            provider_delivery_id="del_abc",
            external_id="JOB_000001_1700000000000",
            quote_db_id=1,
            provider_quote_id="dqt_abc",
            status="pending",
            raw={"id": "del_abc", "status": "pending"},
        )
        self.db.commit()

    def tearDown(self) -> None:
        close_db()
        self.ctx.pop()
        self._temp_db.cleanup()

    def _stored(self) -> dict:
        return self.deliveries.get_by_provider_id(self.db, "del_abc")

    def test_status_change_updates_matching_delivery(self) -> None:
        result = self.service.ingest(self.db, _status_event("pickup"))

        self.assertTrue(result.applied)
        stored = self._stored()
        self.assertEqual(stored["status"], "pickup")
        self.assertEqual(stored["raw"]["status"], "pickup")
        self.assertEqual(len(self.published), 1)
        self.assertEqual(self.published[0].status, "pickup")

    def test_replayed_event_is_logged_twice_and_state_is_unchanged(self) -> None:
        event = _status_event("dropoff", created="2026-03-01T10:00:00Z")
        self.service.ingest(self.db, event)
        first = self._stored()
        self.service.ingest(self.db, event)
        second = self._stored()

        self.assertEqual(first["status"], second["status"])
        self.assertEqual(first["raw"], second["raw"])
        self.assertEqual(len(self.events.list(self.db, delivery_id="del_abc")), 2)

    def test_unknown_delivery_is_logged_without_changes(self) -> None:
        result = self.service.ingest(self.db, _status_event("delivered", delivery_id="del_missing"))

        self.assertEqual(result.outcome, "no_match")
        self.assertEqual(self._stored()["status"], "pending")
        self.assertEqual(len(self.events.list(self.db, delivery_id="del_missing")), 1)
        self.assertEqual(self.published, [])

    def test_older_event_does_not_regress_status(self) -> None:
        self.service.ingest(self.db, _status_event("delivered", created="2026-03-01T10:05:00Z"))
        late = self.service.ingest(self.db, _status_event("pickup", created="2026-03-01T10:01:00Z"))

        self.assertEqual(late.outcome, "stale")
        self.assertEqual(self._stored()["status"], "delivered")

    def test_epoch_and_iso_event_times_compare_in_order(self) -> None:
        self.service.ingest(self.db, _status_event("pickup", created="2026-03-01T10:00:00.250000Z"))
        later = self.service.ingest(self.db, {**_status_event("delivered"), "created": 1772359260})

        self.assertTrue(later.applied)
        self.assertEqual(self._stored()["status"], "delivered")

    def test_out_of_range_epoch_time_still_applies_status(self) -> None:
        for created in (10**20, 1e300, float("nan")):
            with self.subTest(created=created):
                self.service.ingest(self.db, _status_event("pickup"))
                result = self.service.ingest(self.db, {**_status_event("delivered"), "created": created})

                self.assertEqual(result.outcome, "applied")
                self.assertEqual(self._stored()["status"], "delivered")

    def test_unusable_timestamps_normalize_to_none(self) -> None:
        for value in (10**20, 1e300, -1e300, float("inf"), 10**400, "not a date", True):
            with self.subTest(value=value):
                self.assertIsNone(normalize_timestamp(value))
        self.assertEqual(normalize_timestamp(1772359260000), "2026-03-01T10:01:00.000000Z")

    def test_other_event_types_are_only_logged(self) -> None:
        result = self.service.ingest(
            self.db, {"event_type": "delivery.courier_update", "delivery_id": "del_abc", "status": "canceled"}
        )

        self.assertEqual(result.outcome, "ignored_event_type")
        self.assertEqual(self._stored()["status"], "pending")
        rows = self.events.list(self.db, delivery_id="del_abc")
        self.assertEqual(rows[0]["event_type"], "delivery.courier_update")

    def test_event_without_status_is_only_logged(self) -> None:
        result = self.service.ingest(self.db, {"event_type": "delivery.status_changed", "delivery_id": "del_abc"})
        self.assertEqual(result.outcome, "missing_status")
        self.assertEqual(self._stored()["status"], "pending")

    def test_non_object_body_is_stored_as_raw(self) -> None:
        result = self.service.ingest(self.db, "not json at all")

        self.assertIsNone(result.delivery_id)
        rows = self.events.list(self.db)
        self.assertEqual(rows[0]["payload"], {"raw": "not json at all"})


class WebhookRouteTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="webhook_route")
        self.app = create_app(self._temp_db.make_config(Config))
        self.client = self.app.test_client()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_huge_epoch_time_is_applied_through_the_route(self) -> None:
        with self.app.app_context():
            DeliveryRepository().create(
                get_db(),
                provider_delivery_id="del_p",
                external_id="JOB_p",
                quote_db_id=1,
                provider_quote_id="dqt_p",
                status="pending",
                raw={},
            )
            get_db().commit()

        response = self.client.post(
            "/webhook/uber",
            json={"event_type": "delivery.status_changed", "delivery_id": "del_p", "status": "delivered", "created": 10**20},
        )
        self.assertEqual(response.status_code, 200)
        with self.app.app_context():
            self.assertEqual(DeliveryRepository().get_by_provider_id(get_db(), "del_p")["status"], "delivered")

    def test_always_acknowledges_with_empty_body(self) -> None:
        for body in ({"event_type": "delivery.status_changed", "delivery_id": "nope", "status": "x"}, {}):
            response = self.client.post("/webhook/uber", json=body)
            self.assertEqual(response.status_code, 200)
            self.assertEqual(response.get_data(as_text=True), "")

        response = self.client.post("/webhook/uber", data="garbage", content_type="text/plain")
        self.assertEqual(response.status_code, 200)

        listed = self.client.get("/api/webhook-events?limit=2").get_json()
        self.assertEqual(len(listed), 2)
        self.assertEqual(listed[0]["payload"], {"raw": "garbage"})

    def test_ingest_failure_is_still_acknowledged(self) -> None:
        with patch.object(webhook_routes._WEBHOOK_SERVICE, "ingest", side_effect=RuntimeError("db down")):
            with self.assertLogs(self.app.logger.name, level="ERROR"):
                response = self.client.post("/webhook/uber", json={"event_type": "x"})
        self.assertEqual(response.status_code, 200)


if __name__ == "__main__":
    unittest.main()
