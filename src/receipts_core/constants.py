"""Constants for receipt analytics.

Values here do not vary between users. Tunable business settings live in
:class:`receipts_core.config.AnalyticsConfig`.
"""

# Executive membership reward rate and annual cap
REWARDS_RATE = 0.02
MAX_REWARD = 1000.0

# Co-branded card rates used by the payment insights estimate
COBRAND_GAS_RATE = 0.04
COBRAND_MERCH_RATE = 0.02
DEFAULT_CARD_RATE = 0.01
COBRAND_CARD_MARKER = "COSTCO VISA"

# Fuel product codes by grade
PREMIUM_GAS_CODES = ("800877",)
REGULAR_GAS_CODES = ("800599",)

# Receipt-level gas markers
GAS_RECEIPT_TYPE = "Gas Station"
GAS_DOCUMENT_TYPE = "FuelReceipts"

# Transaction types
SALES = "Sales"
REFUND = "Refund"

# Refund classification labels
FULL_RETURN = "FULL_RETURN"
PRICE_ADJUSTMENT = "PRICE_ADJUSTMENT"

# Online orders
ONLINE_WAREHOUSE_NAME = "Costco.com"
ONLINE_DEPARTMENT = "Online"
CANCELLED_STATUS = "Cancelled"

# Fallback labels
UNKNOWN = "Unknown"
OTHER_DEPARTMENT = "Other"
UNKNOWN_MONTH = "unknown"

# Discount insights keep this many targets
TOP_DISCOUNT_ITEMS = 10

# Two unit prices within this many dollars are the same price
PRICE_MATCH_TOLERANCE = 0.02

# Location normalizer: warehouse number embedded in the name
LOCATION_NUMBER_PATTERN = r"(?:warehouse|wh|#)?\s*(\d+)"
