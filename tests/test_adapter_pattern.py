import unittest
from typing import Annotated, Protocol
from unittest.mock import MagicMock

from typeinject import Inject, Injector


class Contains:  # noqa: PLW1641
    def __init__(self, substring):
        self.substring = substring

    def __repr__(self):
        return f"Contains({self.substring!r})"

    def __eq__(self, other):
        return isinstance(other, str) and self.substring in other


class PaymentClient(Protocol):
    def charge(self, order_id: str, amount_cents: int) -> None: ...


class InfoLogger(Protocol):
    def info(self, msg: object, *args: object) -> None: ...


class NullLogger:
    def info(self, msg: object, *args: object) -> None:
        pass


class StripeSdk:
    def pay(self, amount_usd: float, reference: str) -> bool:
        return True


class StripeAdapter:
    def __init__(self, sdk: StripeSdk, logger: InfoLogger, usd_per_cent: float = 0.01) -> None:
        self._logger = logger
        self._sdk = sdk
        self._usd_per_cent = usd_per_cent

    def charge(self, order_id: str, amount_cents: int) -> None:
        self._logger.info("adapting to stripe sdk api")
        amount_usd = amount_cents * self._usd_per_cent
        ok = self._sdk.pay(amount_usd, reference=order_id)
        if not ok:
            msg = "Stripe payment failed"
            raise RuntimeError(msg)


class Checkout:
    payments: Annotated[PaymentClient, Inject]

    def place(self, order_id: str, amount_cents: int) -> None:
        self.payments.charge(order_id, amount_cents)


class TestWiringAdapterThirdPartySDK(unittest.TestCase):
    inj: Injector

    def setUp(self):
        self.inj = Injector()
        self.stripe_sdk = StripeSdk()
        self.stripe_sdk.pay = MagicMock(wraps=self.stripe_sdk.pay)
        self.inj.map(self.stripe_sdk)
        self.logger = NullLogger()
        self.logger.info = MagicMock(wraps=self.logger.info)
        self.inj.map_to(self.logger, InfoLogger)

    def test_adapter_built_by_invoke_calls_adaptee(self):
        client: PaymentClient = self.inj.invoke(StripeAdapter, usd_per_cent=0.0125)
        client.charge("order-123", 5000)

        assert self.stripe_sdk.pay.call_count == 1
        assert self.stripe_sdk.pay.call_args[0][0] == 0.0125 * 5000
        assert self.stripe_sdk.pay.call_args[1]["reference"] == "order-123"

        assert self.logger.info.call_args[0][0] == Contains("stripe sdk")

    def test_adapter_applied_to_consumer_through_child_injector(self):
        request = self.inj.create_child()
        request.map_to(self.inj.invoke(StripeAdapter), PaymentClient)
        checkout = Checkout()

        request.apply(checkout)
        checkout.place("order-456", 100)

        assert self.stripe_sdk.pay.call_args[1]["reference"] == "order-456"
        assert PaymentClient not in self.inj
