import unittest

from courier_desk.contexts.provider.infrastructure.simulator import SimulatedDeliveryProvider
from courier_desk.contexts.provider.runtime import build_provider_gateway
from courier_desk.contexts.provider.infrastructure.client import UberDirectClient
from courier_desk.errors import ConfigurationError, UpstreamError


class SimulatedDeliveryProviderTest(unittest.TestCase):
    def test_same_route_prices_the_same_for_a_seed(self) -> None:
        first = SimulatedDeliveryProvider(seed=7).request_quote("A St, Pune", "B Rd, Mumbai")
        second = SimulatedDeliveryProvider(seed=7).request_quote("A St, Pune", "B Rd, Mumbai")

        self.assertEqual(first.id, second.id)
        self.assertEqual(first.fee, second.fee)
        self.assertTrue(first.id.startswith("dqt_"))
        self.assertGreaterEqual(first.fee, 500)
        self.assertLess(first.fee, 1500)

    def test_delivery_lifecycle(self) -> None:
        provider = SimulatedDeliveryProvider()
        created = provider.create_delivery({"quote_id": "dqt_1", "external_id": "JOB_1"})
        self.assertEqual(created.status, "pending")
        self.assertTrue(created.id.startswith("del_"))

        provider.set_status(created.id, "pickup")
        self.assertEqual(provider.get_delivery(created.id).status, "pickup")
        self.assertEqual(provider.cancel_delivery(created.id).status, "canceled")

    def test_repeated_external_id_still_yields_distinct_deliveries(self) -> None:
        provider = SimulatedDeliveryProvider()
        first = provider.create_delivery({"external_id": "JOB_1"})
        second = provider.create_delivery({"external_id": "JOB_1"})
        self.assertNotEqual(first.id, second.id)

    def test_unknown_delivery_is_provider_404(self) -> None:
        with self.assertRaises(UpstreamError) as ctx:
            SimulatedDeliveryProvider().get_delivery("del_missing")
        self.assertEqual(ctx.exception.status_code, 404)


class ProviderRuntimeTest(unittest.TestCase):
    def test_mode_selects_gateway(self) -> None:
        self.assertIsInstance(build_provider_gateway({"PROVIDER_MODE": "simulator"}), SimulatedDeliveryProvider)
        gateway = build_provider_gateway(
            {
                "PROVIDER_MODE": "uber",
                "UBER_CLIENT_ID": "id",
                "UBER_CLIENT_SECRET": "secret",
                "UBER_CUSTOMER_ID": "cust",
                "TOKEN_EXPIRY_SAFETY_SECONDS": 30,
            }
        )
        self.assertIsInstance(gateway, UberDirectClient)
        self.assertEqual(gateway.token_cache.safety_margin_seconds, 30)
        self.assertEqual(gateway.token_cache.scope, "eats.deliveries")

    def test_unknown_mode_is_configuration_error(self) -> None:
        with self.assertRaises(ConfigurationError) as ctx:
            build_provider_gateway({"PROVIDER_MODE": "carrier-pigeon"})
        self.assertEqual(ctx.exception.code, "provider_mode_invalid")


if __name__ == "__main__":
    unittest.main()
