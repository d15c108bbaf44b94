"""Integer arithmetic for minor currency units (paisa).

All prices, commissions, amounts and balances are int minor units.
No float, no Decimal. 1 PKR = 100 paisa.
"""


def to_display(minor: int, currency: str = "PKR") -> str:
    """Convert minor units to display string: 270000 -> 'PKR 2,700.00'."""
    sign = "-" if minor < 0 else ""
    abs_minor = abs(minor)
    return f"{sign}{currency} {abs_minor // 100:,}.{abs_minor % 100:02d}"


def to_decimal_string(minor: int) -> str:
    """Two-fraction-digit decimal string without grouping: 270050 -> '2700.50'."""
    sign = "-" if minor < 0 else ""
    abs_minor = abs(minor)
    return f"{sign}{abs_minor // 100}.{abs_minor % 100:02d}"


def calculate_commission(price: int, rate_bps: int) -> int:
    """Commission with ceiling division (platform never loses).

    commission = ceil(price * rate_bps / 10000); 8% is 800 bps.
    """
    if price == 0 or rate_bps == 0:
        return 0
    return (price * rate_bps + 9999) // 10000
