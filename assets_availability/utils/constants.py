# Etherlink token registry: symbol → (contract address, decimals)
TOKENS = {
    "USDC":   ("0x796Ea11Fa2dD751eD01b53C372fFDB4AAa8f00F9", 6),
    "WXTZ":   ("0xc9B53AB2679f573e480d01e0f49e2B5CFB7a3EAb", 18),
    "WETH":   ("0xfc24f770F94edBca6D6f885E12d4317320BcB401", 18),
    "USDT":   ("0x2C03058C8AFC06713be23e58D2febC8337dbfE6A", 6),
    "WBTC":   ("0xbFc94CD2B1E55999Cfc7347a9313e88702B83d0F", 8),
    "mTBILL": ("0xDD629E5241CbC5919847783e6C96B2De4754e438", 18),
    "mBASIS": ("0x2247B5A46BB79421a314aB0f0b67fFd11dd37Ee4", 18),
    "xU3O8":  ("0x79052Ab3C166D4899a1e0DD033aC3b379AF0B1fD", 18),
    "USTBL":  ("0xe4880249745eAc5F1eD9d8F7DF844792D560e750", 5),
    "EUTBL":  ("0xa0769f7A8fC65e47dE93797b4e21C073c117Fc80", 5),
    "LBTC":   ("0xecAc9C5F704e954931349Da37F60E39f515c11c1", 8),
    "stXTZ":  ("0x01F07f4d78d47A64F4C3B2b65f513f15Be6E1854", 6),
    "mMEV":   ("0x5542F82389b76C23f5848268893234d8A63fd5c8", 18),
    "mRE7":   ("0x733d504435a49FC8C4e9759e756C2846c92f0160", 18),
}

# USD notionals quoted for slippage, ascending
TRADE_SIZES_USD = (1000, 10000, 50000, 100000)

# Quoted for slippage when the route cache has nothing for a provider
FALLBACK_SLIPPAGE_PAIRS = (
    ("USDC", "WETH"),
    ("USDC", "USDT"),
    ("WETH", "WBTC"),
)

# token → token whose price it borrows
PRICE_ALIASES = {
    "lbtc": "wbtc",
}

# token → (base token, multiplier), applied only when the token has no price
DERIVED_PRICES = {
    "stxtz": ("xtz", 1.031),
}

SIMULATION_FAILED_MARK = "✗"
