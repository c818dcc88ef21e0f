"""
Volatility quote containers.

Provides:
- VolatilityPoint, the immutable (strike, implied vol) market observation
- Conversion from array-likes and DataFrames into Decimal points
- Conversion of points back into a DataFrame for reporting
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..errors import InvalidInputError
from ..math.decimal_math import to_decimal

VOL_COLUMNS = ["implied_vol", "vol", "sigma_mkt", "ivol"]


@dataclass(frozen=True)
class VolatilityPoint:
    """
    A single market implied-vol observation.

    Attributes:
        strike: Strike (absolute, same units as the forward)
        implied_vol: Black implied volatility (0.20 = 20%)
    """
    strike: Decimal
    implied_vol: Decimal

    def __post_init__(self):
        for name in ("strike", "implied_vol"):
            try:
                object.__setattr__(self, name, to_decimal(getattr(self, name)))
            except (TypeError, ValueError) as exc:
                raise InvalidInputError(name, str(exc)) from None

    def to_dict(self) -> Dict[str, str]:
        return {"strike": str(self.strike), "implied_vol": str(self.implied_vol)}

    @classmethod
    def from_any(cls, value) -> "VolatilityPoint":
        """Build from a VolatilityPoint, a mapping or a (strike, vol) pair."""
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            vol_key = _resolve_key(value, VOL_COLUMNS)
            if "strike" not in value or vol_key is None:
                raise InvalidInputError("market_vols", "entries need 'strike' and 'implied_vol'")
            return cls(strike=value["strike"], implied_vol=value[vol_key])
        strike, vol = value
        return cls(strike=strike, implied_vol=vol)


def _resolve_key(mapping, candidates: List[str]) -> Optional[str]:
    """Return the first key present from a candidate list."""
    for c in candidates:
        if c in mapping:
            return c
    return None


def points_from_arrays(strikes: Sequence, vols: Sequence) -> List[VolatilityPoint]:
    """
    Pair up strike and vol array-likes.

    Args:
        strikes: 1-d array-like of strikes
        vols: 1-d array-like of implied vols, same length

    Returns:
        List of VolatilityPoint in input order
    """
    strike_arr = np.ravel(np.asarray(strikes, dtype=object))
    vol_arr = np.ravel(np.asarray(vols, dtype=object))
    if strike_arr.shape != vol_arr.shape:
        raise InvalidInputError(
            "vols", f"length {vol_arr.size} does not match strikes length {strike_arr.size}"
        )

    points = []
    for i, (K, v) in enumerate(zip(strike_arr, vol_arr)):
        if pd.isna(K):
            raise InvalidInputError(f"market_vols[{i}].strike", "missing value")
        if pd.isna(v):
            raise InvalidInputError(f"market_vols[{i}].implied_vol", "missing value")
        points.append(VolatilityPoint(strike=K, implied_vol=v))
    return points


def points_from_frame(quotes_df: pd.DataFrame) -> List[VolatilityPoint]:
    """
    Convert a quotes DataFrame into VolatilityPoints.

    Accepts a ``strike`` column plus one of ``implied_vol``, ``vol``,
    ``sigma_mkt`` or ``ivol`` (column names are case-insensitive).
    """
    df = quotes_df.copy()
    df.columns = [str(c).strip().lower() for c in df.columns]

    vol_col = _resolve_key(df.columns, VOL_COLUMNS)
    if "strike" not in df.columns or vol_col is None:
        raise InvalidInputError("quotes", "DataFrame must include strike and vol columns")

    return points_from_arrays(df["strike"].to_numpy(dtype=object), df[vol_col].to_numpy(dtype=object))


def points_to_frame(points: Sequence[VolatilityPoint]) -> pd.DataFrame:
    """DataFrame with columns [strike, implied_vol] (Decimal object dtype)."""
    return pd.DataFrame(
        {
            "strike": [p.strike for p in points],
            "implied_vol": [p.implied_vol for p in points],
        }
    )


__all__ = [
    "VolatilityPoint",
    "points_from_arrays",
    "points_from_frame",
    "points_to_frame",
]
