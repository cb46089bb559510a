from typing import Dict, Optional

from orderflow.core.enums import PaymentGatewayType
from orderflow.core.exceptions import UnsupportedGatewayError
from orderflow.gateways.base import CustomerRef, NormalizedIntent, PaymentGatewayAdapter, PaymentNotification, SavedCard
from orderflow.gateways.card import CardGatewayAdapter
from orderflow.gateways.wallet import WalletGatewayAdapter


class GatewayRegistry:
    """Explicit wiring of the adapters the service can talk to."""

    def __init__(self, adapters: Dict[PaymentGatewayType, PaymentGatewayAdapter]):
        self._adapters = dict(adapters)

    def get(self, gateway) -> PaymentGatewayAdapter:
        try:
            key = PaymentGatewayType(gateway)
        except ValueError:
            raise UnsupportedGatewayError(gateway)
        adapter = self._adapters.get(key)
        if adapter is None:
            raise UnsupportedGatewayError(key.value)
        return adapter

    def close(self) -> None:
        for adapter in self._adapters.values():
            close = getattr(adapter, "close", None)
            if close is not None:
                close()

    def __contains__(self, gateway) -> bool:
        try:
            return PaymentGatewayType(gateway) in self._adapters
        except ValueError:
            return False


def build_gateway_registry(
    card: Optional[PaymentGatewayAdapter] = None, wallet: Optional[PaymentGatewayAdapter] = None
) -> GatewayRegistry:
    return GatewayRegistry(
        {
            PaymentGatewayType.STRIPE: card or CardGatewayAdapter(),
            PaymentGatewayType.PAYPAL: wallet or WalletGatewayAdapter(),
        }
    )


__all__ = [
    "CardGatewayAdapter",
    "CustomerRef",
    "GatewayRegistry",
    "NormalizedIntent",
    "PaymentGatewayAdapter",
    "PaymentNotification",
    "SavedCard",
    "WalletGatewayAdapter",
    "build_gateway_registry",
]
