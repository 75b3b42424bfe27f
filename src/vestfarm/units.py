"""Integer base-unit helpers (the parseUnits/formatUnits pair of ERC20 tooling).

All accounting happens on integers in the token's smallest unit. These helpers
convert human-readable decimal strings to and from that representation without
ever going through float.
"""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Union

MAX_UINT256 = 2**256 - 1


def to_base_units(value: Union[int, str]) -> int:
    """
    Coerce an int or an exact-integer numeric string to int.

    Accepts scientific notation such as ``"1000e18"``; rejects anything that
    does not denote a whole number (``"1.5"``, ``"1e-3"``) and booleans.

    Args:
        value: int or numeric string

    Returns:
        Integer amount

    Raises:
        ValueError: If value is not an exact integer
    """
    if isinstance(value, bool):
        raise ValueError("Booleans are not amounts")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip().replace("_", "")
        try:
            number = Decimal(text)
        except InvalidOperation as exc:
            raise ValueError(f"Not a number: {value!r}") from exc
        if not number.is_finite() or number != number.to_integral_value():
            raise ValueError(f"Not an integer amount: {value!r}")
        return int(number)
    raise ValueError(f"Unsupported amount type: {type(value).__name__}")


def parse_units(value: Union[int, str], decimals: int = 18) -> int:
    """
    Convert a decimal token amount to base units.

    ``parse_units("1000", 18) == 1000 * 10**18``. More fractional digits than
    ``decimals`` raise instead of silently truncating.
    """
    if decimals < 0:
        raise ValueError("decimals must be non-negative")
    try:
        number = Decimal(str(value).strip().replace("_", ""))
    except InvalidOperation as exc:
        raise ValueError(f"Not a number: {value!r}") from exc
    if not number.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    with localcontext() as ctx:
        # Enough precision that scaling never rounds
        ctx.prec = max(ctx.prec, len(number.as_tuple().digits) + decimals + 1)
        scaled = number.scaleb(decimals)
    if not scaled.is_finite() or scaled != scaled.to_integral_value():
        raise ValueError(f"{value!r} has more than {decimals} decimals")
    return int(scaled)


def format_units(amount: int, decimals: int = 18) -> str:
    """Render base units as a decimal string, trimming trailing zeros."""
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10**decimals)
    if decimals == 0 or frac == 0:
        return f"{sign}{whole}"
    frac_text = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{frac_text}"
