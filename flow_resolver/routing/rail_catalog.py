"""
Payment rail catalog.

Maps every supported rail to its type, display name and capabilities. This is
the single place rail names are interpreted: funding sources, merchant
accepted-rail lists and recipient wallet lists are all matched against it
through `lookup_rail`, so "Touch 'n Go", "touchngo" and "TNG" resolve to the
same rail.

Universal rails (DuitNow and bank transfers) are generic bank-to-bank rails
assumed to work with any merchant or recipient.
"""

import re
from typing import Iterable, Optional, TypedDict

from flow_resolver.models.enums import Capability, IntentType, Rail, RailType


class RailConfig(TypedDict):
    """Static configuration for a payment rail."""

    type: RailType
    display_name: str
    capabilities: frozenset[Capability]
    universal: bool  # Accepted anywhere, regardless of merchant list
    aliases: tuple[str, ...]


_WALLET_CAPS = frozenset({
    Capability.PAY_QR, Capability.P2P, Capability.RECEIVE, Capability.TOP_UP, Capability.FUND_TOP_UP,
})
_BANK_CAPS = frozenset({Capability.PAY_QR, Capability.P2P, Capability.PAY, Capability.FUND_TOP_UP})
_BNPL_CAPS = frozenset({Capability.PAY_QR, Capability.PAY})


RAIL_CATALOG: dict[Rail, RailConfig] = {
    # ─── E-wallets ─────────────────────────────────────────────────────
    Rail.TOUCH_N_GO: {
        "type": RailType.WALLET,
        "display_name": "Touch 'n Go",
        "capabilities": _WALLET_CAPS,
        "universal": False,
        "aliases": ("tng", "touchngoewallet"),
    },
    Rail.GRABPAY: {
        "type": RailType.WALLET,
        "display_name": "GrabPay",
        "capabilities": _WALLET_CAPS,
        "universal": False,
        "aliases": ("grab",),
    },
    Rail.BOOST: {
        "type": RailType.WALLET,
        "display_name": "Boost",
        "capabilities": _WALLET_CAPS,
        "universal": False,
        "aliases": (),
    },
    Rail.SHOPEEPAY: {
        "type": RailType.WALLET,
        "display_name": "ShopeePay",
        "capabilities": _WALLET_CAPS,
        "universal": False,
        "aliases": ("shopee",),
    },
    # ─── National real-time rail ───────────────────────────────────────
    # DuitNow cannot hold a balance of its own, so it is never topped up
    # and never funds a top-up.
    Rail.DUITNOW: {
        "type": RailType.WALLET,
        "display_name": "DuitNow",
        "capabilities": frozenset({Capability.PAY_QR, Capability.P2P, Capability.RECEIVE, Capability.PAY}),
        "universal": True,
        "aliases": ("duitnowqr", "paynet"),
    },
    # ─── Banks ─────────────────────────────────────────────────────────
    Rail.MAYBANK: {
        "type": RailType.BANK,
        "display_name": "Maybank",
        "capabilities": _BANK_CAPS,
        "universal": True,
        "aliases": ("maybank2u", "mae"),
    },
    Rail.CIMB: {
        "type": RailType.BANK,
        "display_name": "CIMB",
        "capabilities": _BANK_CAPS,
        "universal": True,
        "aliases": ("cimbclicks", "cimbocto"),
    },
    Rail.BANK_TRANSFER: {
        "type": RailType.BANK,
        "display_name": "Bank Transfer",
        "capabilities": _BANK_CAPS,
        "universal": True,
        "aliases": ("fpx", "ibg"),
    },
    # ─── Cards ─────────────────────────────────────────────────────────
    Rail.CARD: {
        "type": RailType.CARD,
        "display_name": "Card",
        "capabilities": frozenset({Capability.PAY_QR, Capability.PAY, Capability.FUND_TOP_UP}),
        "universal": False,
        "aliases": ("card", "visa", "mastercard", "debitcard", "creditcard"),
    },
    # ─── Buy now, pay later ────────────────────────────────────────────
    Rail.ATOME: {
        "type": RailType.BNPL,
        "display_name": "Atome",
        "capabilities": _BNPL_CAPS,
        "universal": False,
        "aliases": (),
    },
    Rail.SPAYLATER: {
        "type": RailType.BNPL,
        "display_name": "SPayLater",
        "capabilities": _BNPL_CAPS,
        "universal": False,
        "aliases": ("shopeepaylater",),
    },
}


# Capability a rail needs to serve each intent
INTENT_CAPABILITY: dict[IntentType, Capability] = {
    IntentType.PAY_MERCHANT: Capability.PAY_QR,
    IntentType.SEND_MONEY: Capability.P2P,
    IntentType.REQUEST_MONEY: Capability.RECEIVE,
    IntentType.PAY_BILL: Capability.PAY,
}


def _normalize(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower().replace("'n", "n"))


_LOOKUP: dict[str, Rail] = {}
for _rail, _cfg in RAIL_CATALOG.items():
    _LOOKUP[_normalize(_rail.value)] = _rail
    _LOOKUP[_normalize(_cfg["display_name"])] = _rail
    for _alias in _cfg["aliases"]:
        _LOOKUP[_normalize(_alias)] = _rail


def lookup_rail(name: Optional[str]) -> Optional[Rail]:
    """Resolve a rail name (identifier, display name or alias) to a Rail."""
    if not name:
        return None
    return _LOOKUP.get(_normalize(name))


def is_universal(rail: Optional[Rail]) -> bool:
    return rail is not None and RAIL_CATALOG[rail]["universal"]


def accepts_top_up(rail: Optional[Rail], rail_type: RailType) -> bool:
    """Whether money can be moved into this rail before paying from it."""
    if rail is None:
        return rail_type == RailType.WALLET
    return Capability.TOP_UP in RAIL_CATALOG[rail]["capabilities"]


def can_fund_top_up(rail: Optional[Rail], rail_type: RailType) -> bool:
    """Whether this rail's balance can be moved into another rail."""
    if rail is None:
        # BNPL credit lines cannot be moved into another rail
        return rail_type != RailType.BNPL
    return Capability.FUND_TOP_UP in RAIL_CATALOG[rail]["capabilities"]


def supports_intent(rail: Optional[Rail], intent_type: IntentType) -> bool:
    """
    Whether the rail has the capability the intent needs.

    Rails outside the catalog are given the benefit of the doubt; the
    compatibility score will rate them as ambiguous instead.
    """
    if rail is None:
        return True
    return INTENT_CAPABILITY[intent_type] in RAIL_CATALOG[rail]["capabilities"]


def parse_accepted_rails(names: Optional[Iterable[str]]) -> Optional[frozenset[Rail]]:
    """
    Turn a merchant or recipient rail list into a set of known rails.

    Returns None when no list was given (accepts anything). Returns an empty
    set when a list was given but none of its names are rails we support.
    """
    if names is None:
        return None
    names = list(names)
    if not names:
        return None
    return frozenset(rail for rail in (lookup_rail(n) for n in names) if rail is not None)


def is_compatible(rail: Optional[Rail], accepted: Optional[frozenset[Rail]]) -> bool:
    """
    Whether a rail can pay a payee that accepts the given set of rails.

    An empty accepted set means the payee only listed rails we do not
    support, so nothing is compatible, universal rails included.
    """
    if accepted is None:
        return True
    if not accepted:
        return False
    return is_universal(rail) or rail in accepted


# Convenience set of all rails that work with any payee
UNIVERSAL_RAILS = frozenset(r for r, cfg in RAIL_CATALOG.items() if cfg["universal"])
