"""
Server-side credit pack catalog.

Prices live here and nowhere else; clients only ever select a pack by id.
"""

from .exceptions import InvalidPackError
from .models import CreditPack

CREDIT_PACKS: dict[str, CreditPack] = {
    pack.id: pack
    for pack in (
        CreditPack(id="starter", name="Starter Pack", credits=10, price=499),
        CreditPack(id="popular", name="Popular Pack", credits=25, price=999),
        CreditPack(id="best-value", name="Best Value Pack", credits=60, price=1999),
        CreditPack(id="party-pack", name="Party Pack", credits=125, price=3499),
    )
}

# Apple Pay / Google Pay one-tap purchase, sold through a PaymentIntent
QUICK_BUY_PACK = CreditPack(
    id="quick-buy",
    name="Quick Buy - 10 Meme Credits",
    credits=10,
    price=999,
)


def get_pack(pack_id: object) -> CreditPack:
    """
    Look up a checkout pack by id.

    Raises:
        InvalidPackError: If the id is not a known checkout pack
    """
    if not isinstance(pack_id, str) or pack_id not in CREDIT_PACKS:
        raise InvalidPackError(pack_id)
    return CREDIT_PACKS[pack_id]


def list_packs() -> list[CreditPack]:
    """Checkout packs in display order."""
    return list(CREDIT_PACKS.values())
