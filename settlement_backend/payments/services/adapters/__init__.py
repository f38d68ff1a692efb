from .mercadopago import MercadoPagoAdapter
from .paystack import PaystackAdapter

ADAPTERS = {
    MercadoPagoAdapter.provider: MercadoPagoAdapter,
    PaystackAdapter.provider: PaystackAdapter,
}


def get_adapter(provider: str):
    try:
        return ADAPTERS[provider]()
    except KeyError as exc:
        raise LookupError(f"No webhook adapter for provider '{provider}'") from exc


__all__ = ["ADAPTERS", "MercadoPagoAdapter", "PaystackAdapter", "get_adapter"]
