"""Helpers related to parsing"""

import re


def parse_duration(s: str) -> float:
    """Parse a duration string into seconds.

    Supported suffixes: us, ms, s, m. A plain number is taken as seconds.
    """
    units = [
        (r'^\s*(\d+(?:\.\d+)?)\s*us$', 0.000001),
        (r'^\s*(\d+(?:\.\d+)?)\s*ms$', 0.001),
        (r'^\s*(\d+(?:\.\d+)?)\s*s$', 1),
        (r'^\s*(\d+(?:\.\d+)?)\s*m$', 60),
        (r'^\s*(\d+(?:\.\d+)?)$', 1),
    ]

    for pat, factor in units:
        m = re.fullmatch(pat, s)
        if m:
            return float(m.group(1)) * factor

    raise TypeError(f"invalid duration value: '{s}'")
