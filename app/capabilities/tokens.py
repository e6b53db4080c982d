# app/capabilities/tokens.py
"""
Tokens and spender contracts the capabilities know about on Cronos.

Addresses are stored lowercase; compare against address.lower().
"""
from typing import Dict, NamedTuple, Optional


class Token(NamedTuple):
    symbol: str
    name: str
    address: str
    decimals: int


class Spender(NamedTuple):
    name: str
    verified: bool
    category: str


WCRO_ADDRESS = "0x5c7f8a570d578ed84e63fdfa7b1ee72deae1ae23"

# Keyed by symbol. CRO resolves to the wrapped token for DEX quotes.
TOKENS: Dict[str, Token] = {
    "CRO": Token("CRO", "Cronos", WCRO_ADDRESS, 18),
    "WCRO": Token("WCRO", "Wrapped CRO", WCRO_ADDRESS, 18),
    "USDC": Token("USDC", "USD Coin", "0xc21223249ca28397b4b6541dffaecc539bff0c59", 6),
    "USDT": Token("USDT", "Tether USD", "0x66e428c3f67a68878562e79a0234c1f83c208770", 6),
    "VVS": Token("VVS", "VVS Finance", "0x2d03bece6747adc00e1a131bba1469c15fd11e03", 18),
    "DAI": Token("DAI", "Dai Stablecoin", "0xf2001b145b43032aaf5ee2884e456ccd805f677d", 18),
}

# ERC-20 contracts checked for allowances (one entry per address)
APPROVAL_TOKENS = [token for symbol, token in TOKENS.items() if symbol != "CRO"]

KNOWN_SPENDERS: Dict[str, Spender] = {
    "0x145863eb42cf62847a6ca784e6416c1682b1b2ae": Spender("VVS Finance Router", True, "DEX"),
    "0xeadf7c01da7e93fdb5f16b0aa9ee85f978e89e95": Spender("Tectonic tCRO", True, "Lending"),
    "0x543f4db9bd26c9eb6ad4dd1c33522c966c625774": Spender("VVS Finance Factory", True, "DEX"),
    "0xa111c17f8b8303280d3eb01bbcd61000aa7f39f9": Spender("Ferro Swap", True, "DEX"),
    "0x6b3595068778dd592e39a122f4f5a5cf09c90fe2": Spender("MM Finance Router", True, "DEX"),
}

# Reference USD prices used for offline quotes and price impact
REFERENCE_PRICES_USD: Dict[str, float] = {
    "CRO": 0.098,
    "WCRO": 0.098,
    "USDC": 1.0,
    "USDT": 1.0,
    "DAI": 1.0,
    "VVS": 0.000012,
}


def resolve_token(symbol_or_address: str) -> Optional[Token]:
    """Look a token up by symbol (case-insensitive) or by address."""
    token = TOKENS.get(symbol_or_address.strip().upper())
    if token:
        return token
    needle = symbol_or_address.strip().lower()
    for token in TOKENS.values():
        if token.address == needle:
            return token
    return None


def reference_rate(symbol_in: str, symbol_out: str) -> float:
    """Units of symbol_out one unit of symbol_in is worth at reference prices."""
    price_in = REFERENCE_PRICES_USD.get(symbol_in, 1.0)
    price_out = REFERENCE_PRICES_USD.get(symbol_out, 1.0)
    return price_in / price_out
