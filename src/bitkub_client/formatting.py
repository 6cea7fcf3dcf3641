from __future__ import annotations


def format_amount(value: float) -> str:
    """
    Render ``value`` the way Bitkub expects amounts and rates.

    Fixed-point with six decimals (never scientific notation), then trailing
    zeros are stripped, then a bare trailing separator:

      10.0    -> "10"
      0.0010  -> "0.001"
      100.100 -> "100.1"

    The same string is signed and transmitted, so it must be produced once
    and placed in the payload before signing.
    """
    text = f"{value:f}"
    # order matters: "100.000" -> "100." -> "100"
    return text.rstrip("0").rstrip(".")
