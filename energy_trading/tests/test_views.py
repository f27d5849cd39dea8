from unittest import mock

from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.settings import api_settings
from rest_framework.test import APIClient, APIRequestFactory

from energy_trading.models import Factory, FactoryBalance, Trade
from energy_trading.services import reset_services
from energy_trading.throttling import LoginAttemptThrottle


class ApiTestCase(TestCase):
    """
    Each test runs inside a transaction that is rolled back automatically.
    Service singletons, including rate-limit counters, are rebuilt per test.
    """

    def setUp(self):
        reset_services()
        self.client = APIClient()

    def register(self, factory_id, initial_balance, currency_balance=0):
        response = self.client.post("/api/factories/", {
            "factory_id": factory_id,
            "name": f"{factory_id} plant",
            "initial_balance": initial_balance,
            "energy_type": "wind",
            "currency_balance": currency_balance,
        }, format="json")
        self.assertEqual(response.status_code, 201, response.data)
        return response


class FactoryEndpointTest(ApiTestCase):

    def test_health(self):
        response = self.client.get("/api/health/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "OK")

    def test_register_and_fetch(self):
        response = self.register("Factory01", 100, 25)

        self.assertEqual(response.data["balances"]["energy_balance"], "100.0000")
        self.assertEqual(response.data["balances"]["available_energy"], "100.0000")

        detail = self.client.get("/api/factories/Factory01/")
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.data["name"], "Factory01 plant")
        self.assertEqual(detail.data["balances"]["currency_balance"], "25.0000")

    def test_register_duplicate_returns_409(self):
        self.register("Factory01", 100)

        response = self.client.post("/api/factories/", {
            "factory_id": "Factory01",
            "name": "Again",
            "initial_balance": 1,
            "energy_type": "solar",
        }, format="json")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(Factory.objects.count(), 1)

    def test_register_missing_fields_returns_400(self):
        response = self.client.post("/api/factories/", {"factory_id": "F"}, format="json")

        self.assertEqual(response.status_code, 400)

    def test_register_negative_balance_returns_400(self):
        response = self.client.post("/api/factories/", {
            "factory_id": "F",
            "name": "F",
            "initial_balance": -1,
            "energy_type": "solar",
        }, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertFalse(FactoryBalance.objects.exists())

    def test_unknown_factory_returns_404(self):
        self.assertEqual(self.client.get("/api/factories/ghost/").status_code, 404)
        self.assertEqual(self.client.get("/api/factories/ghost/balance/").status_code, 404)

    def test_list_factories(self):
        self.register("F1", 1)
        self.register("F2", 2)

        response = self.client.get("/api/factories/")

        self.assertEqual(response.data["count"], 2)
        self.assertEqual([f["factory_id"] for f in response.data["data"]], ["F1", "F2"])

    def test_consumption_updates_and_status(self):
        self.register("F1", 100)

        response = self.client.put(
            "/api/factories/F1/daily-consumption/", {"daily_consumption": 150}, format="json",
        )
        self.assertEqual(response.status_code, 200)

        status_response = self.client.get("/api/factories/F1/energy-status/")
        self.assertEqual(status_response.data["status"], "deficit")
        self.assertEqual(status_response.data["difference"], "-50.0000")

        response = self.client.put(
            "/api/factories/F1/available-energy/", {"available_energy": 200}, format="json",
        )
        self.assertEqual(response.data["available_energy"], "200.0000")
        self.assertEqual(response.data["energy_balance"], "100.0000")

    def test_energy_readings(self):
        self.register("F1", 100)

        response = self.client.put("/api/factories/F1/energy/", {
            "current_generation": "7.25",
            "current_consumption": 2,
            "energy_balance": 90,
        }, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["current_generation"], "7.2500")
        self.assertEqual(response.data["current_consumption"], "2.0000")
        self.assertEqual(response.data["energy_balance"], "90.0000")
        history = self.client.get("/api/factories/F1/history/").data["data"]
        self.assertEqual(history[-1]["reason"], "adjustment")

    def test_invalid_energy_readings_return_400(self):
        self.register("F1", 100)

        response = self.client.put(
            "/api/factories/F1/energy/", {"current_generation": "x", "current_consumption": 1}, format="json",
        )

        self.assertEqual(response.status_code, 400)

    def test_invalid_consumption_returns_400(self):
        self.register("F1", 100)

        response = self.client.put(
            "/api/factories/F1/daily-consumption/", {"daily_consumption": -3}, format="json",
        )

        self.assertEqual(response.status_code, 400)


class EnergyEndpointTest(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.register("A", 100)
        self.register("B", 0)

    def test_mint(self):
        response = self.client.post("/api/energy/mint/", {"factory_id": "B", "amount": 12.5}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["energy_balance"], "12.5000")

    def test_transfer(self):
        response = self.client.post("/api/energy/transfer/", {
            "from_factory_id": "A",
            "to_factory_id": "B",
            "amount": 40,
        }, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["from"]["energy_balance"], "60.0000")
        self.assertEqual(response.data["to"]["energy_balance"], "40.0000")

    def test_transfer_insufficient_returns_422(self):
        response = self.client.post("/api/energy/transfer/", {
            "from_factory_id": "B",
            "to_factory_id": "A",
            "amount": 1,
        }, format="json")

        self.assertEqual(response.status_code, 422)

    def test_history(self):
        self.client.post("/api/energy/mint/", {"factory_id": "A", "amount": 5}, format="json")

        response = self.client.get("/api/factories/A/history/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["data"][0]["reason"], "mint")
        self.assertEqual(response.data["data"][0]["balance_after"], "105.0000")


class TradeEndpointTest(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.register("A", 100, 0)
        self.register("B", 0, 50)

    def create_trade(self, **overrides):
        payload = {"seller_id": "A", "buyer_id": "B", "amount": 20, "price_per_unit": 2}
        payload.update(overrides)
        return self.client.post("/api/trades/", payload, format="json")

    def test_create_and_execute(self):
        created = self.create_trade()
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.data["total_price"], "40.0000")
        self.assertEqual(created.data["status"], "pending")

        trade_id = created.data["trade_id"]
        executed = self.client.post(f"/api/trades/{trade_id}/execute/")

        self.assertEqual(executed.status_code, 200)
        self.assertEqual(executed.data["status"], "completed")
        self.assertIsNotNone(executed.data["completed_at"])
        self.assertEqual(self.client.get("/api/factories/B/balance/").data["currency_balance"], "10.0000")
        self.assertEqual(self.client.get("/api/factories/A/balance/").data["currency_balance"], "40.0000")

    def test_execute_twice_returns_404(self):
        trade_id = self.create_trade(trade_id="T1").data["trade_id"]
        self.client.post(f"/api/trades/{trade_id}/execute/")

        response = self.client.post(f"/api/trades/{trade_id}/execute/")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(FactoryBalance.objects.get(factory_id="A").energy_balance, 80)

    def test_execute_insufficient_returns_422_and_stays_pending(self):
        trade_id = self.create_trade(amount=200).data["trade_id"]

        response = self.client.post(f"/api/trades/{trade_id}/execute/")

        self.assertEqual(response.status_code, 422)
        self.assertEqual(Trade.objects.get(id=trade_id).status, "pending")
        self.assertEqual(FactoryBalance.objects.get(factory_id="A").energy_balance, 100)

    def test_create_invalid_returns_400(self):
        self.assertEqual(self.create_trade(amount=0).status_code, 400)
        self.assertEqual(self.create_trade(price_per_unit="abc").status_code, 400)
        self.assertEqual(self.create_trade(seller_id=None).status_code, 400)

    def test_create_with_blank_trade_id_generates_one(self):
        response = self.create_trade(trade_id="")

        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data["trade_id"].startswith("Trade_"))

    def test_create_with_out_of_range_total_returns_400(self):
        response = self.create_trade(amount="1000000000000", price_per_unit="1000000000000")

        self.assertEqual(response.status_code, 400)
        self.assertFalse(Trade.objects.exists())

    def test_create_duplicate_returns_409(self):
        self.create_trade(trade_id="T1")

        self.assertEqual(self.create_trade(trade_id="T1").status_code, 409)

    def test_cancel(self):
        trade_id = self.create_trade().data["trade_id"]

        response = self.client.post(f"/api/trades/{trade_id}/cancel/")

        self.assertEqual(response.data["status"], "cancelled")
        self.assertEqual(self.client.post(f"/api/trades/{trade_id}/execute/").status_code, 404)

    def test_detail_and_list(self):
        trade_id = self.create_trade().data["trade_id"]

        self.assertEqual(self.client.get(f"/api/trades/{trade_id}/").data["trade_id"], trade_id)
        self.assertEqual(self.client.get("/api/trades/missing/").status_code, 404)
        self.assertEqual(self.client.get("/api/trades/", {"status": "pending"}).data["count"], 1)
        self.assertEqual(self.client.get("/api/trades/", {"status": "bogus"}).status_code, 400)


class OfferEndpointTest(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.register("A", 100)

    def create_offer(self, **overrides):
        payload = {"factory_id": "A", "offer_type": "sell", "energy_amount": 30, "price_per_kwh": "0.15"}
        payload.update(overrides)
        return self.client.post("/api/offers/", payload, format="json")

    def test_create_fetch_and_list(self):
        created = self.create_offer(offer_id="O1")

        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.data["price_per_kwh"], "0.1500")
        self.assertEqual(self.client.get("/api/offers/O1/").data["status"], "active")
        self.assertEqual(self.client.get("/api/offers/").data["count"], 1)

    def test_closed_offers_leave_the_board(self):
        self.create_offer(offer_id="O1")

        response = self.client.put("/api/offers/O1/status/", {"status": "completed"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get("/api/offers/").data["count"], 0)
        again = self.client.put("/api/offers/O1/status/", {"status": "cancelled"}, format="json")
        self.assertEqual(again.status_code, 409)

    def test_errors(self):
        self.assertEqual(self.create_offer(offer_type="lend").status_code, 400)
        self.assertEqual(self.create_offer(factory_id="ghost").status_code, 404)
        self.assertEqual(self.client.get("/api/offers/missing/").status_code, 404)
        self.create_offer(offer_id="O1")
        self.assertEqual(self.create_offer(offer_id="O1").status_code, 409)


@override_settings(ENERGY_TRADING={
    "RATE_LIMITS": {
        "login": {"ceiling": 2, "window_seconds": 900},
        "signup": {"ceiling": 1, "window_seconds": 900},
    },
})
class AuthEndpointTest(ApiTestCase):

    signup_payload = {
        "email": "plant@example.com",
        "password": "s3cretpass",
        "factory_name": "Solar Plant",
        "fiscal_matricule": "FM-001",
        "energy_source": "solar",
    }

    def test_signup_creates_factory_with_default_balances(self):
        response = self.client.post("/api/auth/signup/", self.signup_payload, format="json")

        self.assertEqual(response.status_code, 201)
        factory = response.data["factory"]
        self.assertTrue(factory["factory_id"].startswith("Factory_"))
        self.assertEqual(factory["balances"]["currency_balance"], "1000.0000")
        self.assertNotEqual(Factory.objects.get().password, "s3cretpass")

    def test_signup_is_throttled(self):
        self.client.post("/api/auth/signup/", self.signup_payload, format="json")

        response = self.client.post("/api/auth/signup/", self.signup_payload, format="json")

        self.assertEqual(response.status_code, 429)
        self.assertTrue(0 < int(response["Retry-After"]) <= 900)
        self.assertEqual(Factory.objects.count(), 1)

    def test_login(self):
        self.client.post("/api/auth/signup/", self.signup_payload, format="json")

        response = self.client.post("/api/auth/login/", {
            "email": "plant@example.com",
            "password": "s3cretpass",
        }, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["factory"]["name"], "Solar Plant")

    def test_wrong_password_returns_401_then_throttles(self):
        self.client.post("/api/auth/signup/", self.signup_payload, format="json")
        bad = {"email": "plant@example.com", "password": "wrongpass1"}

        self.assertEqual(self.client.post("/api/auth/login/", bad, format="json").status_code, 401)
        self.assertEqual(self.client.post("/api/auth/login/", bad, format="json").status_code, 401)
        self.assertEqual(self.client.post("/api/auth/login/", bad, format="json").status_code, 429)

    def test_clients_are_throttled_independently(self):
        self.client.post("/api/auth/signup/", self.signup_payload, format="json")

        other = APIClient(REMOTE_ADDR="10.1.2.3")
        payload = dict(self.signup_payload, email="other@example.com", fiscal_matricule="FM-002")
        response = other.post("/api/auth/signup/", payload, format="json")

        self.assertEqual(response.status_code, 201)

    def test_forwarded_header_does_not_reset_the_throttle(self):
        self.client.post("/api/auth/signup/", self.signup_payload, format="json", HTTP_X_FORWARDED_FOR="1.1.1.1")

        payload = dict(self.signup_payload, email="other@example.com", fiscal_matricule="FM-002")
        response = self.client.post("/api/auth/signup/", payload, format="json", HTTP_X_FORWARDED_FOR="2.2.2.2")

        self.assertEqual(response.status_code, 429)
        self.assertEqual(Factory.objects.count(), 1)

    def test_login_with_non_string_credentials_returns_400(self):
        for payload in ({"email": 5, "password": "x"}, {"email": "a@b.c", "password": ["x"]}):
            with self.subTest(payload=payload):
                response = self.client.post("/api/auth/login/", payload, format="json")

                self.assertEqual(response.status_code, 400)


class ThrottleIdentityTest(SimpleTestCase):

    def setUp(self):
        self.factory = APIRequestFactory()

    def request(self):
        return self.factory.post("/api/auth/login/", REMOTE_ADDR="10.0.0.9", HTTP_X_FORWARDED_FOR="6.6.6.6")

    def test_without_trusted_proxies_remote_addr_is_used(self):
        with mock.patch.object(api_settings, "NUM_PROXIES", None):
            self.assertEqual(LoginAttemptThrottle().get_ident(self.request()), "10.0.0.9")

    def test_trusted_proxy_header_is_honoured(self):
        with mock.patch.object(api_settings, "NUM_PROXIES", 1):
            self.assertEqual(LoginAttemptThrottle().get_ident(self.request()), "6.6.6.6")
