def price_key(symbol: str) -> str:
    """Price table rows are keyed by lower-case token symbol."""
    return symbol.strip().lower()
