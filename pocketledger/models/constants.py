"""Static catalogs: seeded currencies, default categories, crypto upstream ids.

These are reference data, not user data; the database copy is seeded from here
once on first run.
"""

from typing import Dict, List, Tuple

PIVOT_CURRENCY = "USD"

# (code, symbol, name), most traded first
FIAT_CURRENCIES: List[Tuple[str, str, str]] = [
    ("USD", "$", "US Dollar"),
    ("EUR", "€", "Euro"),
    ("JPY", "¥", "Japanese Yen"),
    ("GBP", "£", "British Pound"),
    ("CNY", "¥", "Chinese Yuan"),
    ("AUD", "A$", "Australian Dollar"),
    ("CAD", "C$", "Canadian Dollar"),
    ("CHF", "CHF", "Swiss Franc"),
    ("HKD", "HK$", "Hong Kong Dollar"),
    ("SGD", "S$", "Singapore Dollar"),
    ("SEK", "kr", "Swedish Krona"),
    ("NOK", "kr", "Norwegian Krone"),
    ("DKK", "kr", "Danish Krone"),
    ("KRW", "₩", "South Korean Won"),
    ("INR", "₹", "Indian Rupee"),
    ("BRL", "R$", "Brazilian Real"),
    ("MXN", "$", "Mexican Peso"),
    ("ZAR", "R", "South African Rand"),
    ("RUB", "₽", "Russian Ruble"),
    ("KGS", "сом", "Kyrgyzstani Som"),
    ("NZD", "NZ$", "New Zealand Dollar"),
    ("PLN", "zł", "Polish Zloty"),
    ("CZK", "Kč", "Czech Koruna"),
    ("HUF", "Ft", "Hungarian Forint"),
    ("ILS", "₪", "Israeli Shekel"),
    ("TRY", "₺", "Turkish Lira"),
    ("AED", "AED", "UAE Dirham"),
    ("SAR", "SR", "Saudi Riyal"),
    ("THB", "฿", "Thai Baht"),
    ("MYR", "RM", "Malaysian Ringgit"),
]

# (code, symbol, name), by market cap
CRYPTO_CURRENCIES: List[Tuple[str, str, str]] = [
    ("BTC", "₿", "Bitcoin"),
    ("ETH", "Ξ", "Ethereum"),
    ("USDT", "₮", "Tether"),
    ("XRP", "XRP", "XRP"),
    ("BNB", "BNB", "BNB"),
    ("SOL", "SOL", "Solana"),
    ("USDC", "USDC", "USD Coin"),
    ("DOGE", "Ð", "Dogecoin"),
    ("ADA", "₳", "Cardano"),
    ("TRX", "TRX", "TRON"),
    ("AVAX", "AVAX", "Avalanche"),
    ("TON", "TON", "Toncoin"),
    ("LINK", "LINK", "Chainlink"),
    ("DOT", "DOT", "Polkadot"),
    ("LTC", "Ł", "Litecoin"),
    ("UNI", "UNI", "Uniswap"),
    ("ATOM", "ATOM", "Cosmos"),
    ("XLM", "XLM", "Stellar"),
    ("XMR", "XMR", "Monero"),
    ("SHIB", "SHIB", "Shiba Inu"),
]

# Currency code -> CoinGecko coin id. Codes missing here are never priced.
CRYPTO_UPSTREAM_IDS: Dict[str, str] = {
    "AAVE": "aave",
    "ADA": "cardano",
    "ALGO": "algorand",
    "APT": "aptos",
    "ARB": "arbitrum",
    "ATOM": "cosmos",
    "AVAX": "avalanche-2",
    "AXS": "axie-infinity",
    "BCH": "bitcoin-cash",
    "BGB": "bitget-token",
    "BNB": "binancecoin",
    "BTC": "bitcoin",
    "BUSD": "binance-usd",
    "CFX": "conflux-token",
    "CRO": "crypto-com-chain",
    "DAI": "dai",
    "DOGE": "dogecoin",
    "DOT": "polkadot",
    "EGLD": "elrond-erd-2",
    "ETC": "ethereum-classic",
    "ETH": "ethereum",
    "FIL": "filecoin",
    "FLR": "flare-networks",
    "GRT": "the-graph",
    "HBAR": "hedera-hashgraph",
    "ICP": "internet-computer",
    "INJ": "injective-protocol",
    "JLP": "jupiter-exchange-solana",
    "KAS": "kaspa",
    "LDO": "lido-dao",
    "LEO": "leo-token",
    "LINK": "chainlink",
    "LTC": "litecoin",
    "LUNC": "terra-luna-classic",
    "METH": "mantle-staked-ether",
    "NEAR": "near",
    "OP": "optimism",
    "POL": "matic-network",
    "PYTH": "pyth-network",
    "QNT": "quant-network",
    "RENDER": "render-token",
    "SEI": "sei-network",
    "SHIB": "shiba-inu",
    "SOL": "solana",
    "STETH": "staked-ether",
    "STX": "blockstack",
    "SUI": "sui",
    "TAO": "bittensor",
    "THETA": "theta-token",
    "TIA": "celestia",
    "TON": "the-open-network",
    "TRX": "tron",
    "UNI": "uniswap",
    "USDC": "usd-coin",
    "USDT": "tether",
    "VET": "vechain",
    "WBT": "whitebit",
    "WBTC": "wrapped-bitcoin",
    "XLM": "stellar",
    "XMR": "monero",
    "XRP": "ripple",
    "XTZ": "tezos",
    "ZEC": "zcash",
}

UPSTREAM_ID_TO_CRYPTO_CODE: Dict[str, str] = {v: k for k, v in CRYPTO_UPSTREAM_IDS.items()}

# Region (ISO 3166 alpha-2) -> currency, used when the locale carries no currency
REGION_CURRENCIES: Dict[str, str] = {
    "US": "USD", "CA": "CAD", "GB": "GBP",
    "AU": "AUD", "JP": "JPY", "CN": "CNY", "IN": "INR",
    "BR": "BRL", "MX": "MXN", "KR": "KRW", "SG": "SGD",
    "CH": "CHF", "SE": "SEK", "NO": "NOK", "DK": "DKK",
    "PL": "PLN", "CZ": "CZK", "HU": "HUF", "IL": "ILS",
    "TR": "TRY", "AE": "AED", "SA": "SAR", "TH": "THB",
    "MY": "MYR", "ZA": "ZAR", "RU": "RUB",
    "KG": "KGS", "KZ": "KZT", "UZ": "UZS", "TJ": "TJS",
    "AM": "AMD", "AZ": "AZN", "GE": "GEL", "MD": "MDL",
    "UA": "UAH", "BY": "BYN",
}

# (name, icon, sort_order)
DEFAULT_EXPENSE_CATEGORIES: List[Tuple[str, str, int]] = [
    ("Other", "other", 0),
    ("Food & Drinks", "food.drinks", 1),
    ("Transport", "transport", 2),
    ("Entertainment", "entertainment", 3),
    ("Sports", "sports", 4),
    ("Shopping", "shopping", 5),
    ("Health", "health", 6),
    ("Housing", "housing", 7),
    ("Travel", "travel", 8),
    ("Education", "education", 9),
    ("Pet", "pet", 10),
    ("Child", "child", 11),
]

DEFAULT_INCOME_CATEGORIES: List[Tuple[str, str, int]] = [
    ("Salary", "salary", 0),
    ("Gift", "gift", 1),
    ("Bonuses", "bonuses", 2),
    ("Business", "business", 3),
    ("Investment", "investment", 4),
    ("Other", "other", 5),
]

DEFAULT_ACCOUNT_NAME = "Main Account"
