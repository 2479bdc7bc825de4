import time
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, Union

from .exceptions import ArgumentsError, EnvFileError

YOCTO_PER_NEAR = 10 ** 24


def format_timestamp(ts: float = None) -> str:
    """Format timestamp to ISO format"""
    if ts is None:
        ts = time.time()
    return datetime.fromtimestamp(ts).isoformat()


def format_near_amount(amount: Union[int, float, str, Decimal]) -> str:
    """Render a NEAR amount the way the near CLI expects it (no exponent, no trailing zeros)"""
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ArgumentsError(f"Invalid NEAR amount: {amount!r}")
    if not value.is_finite():
        raise ArgumentsError(f"Invalid NEAR amount: {amount!r}")
    if value < 0:
        raise ArgumentsError(f"NEAR amount must not be negative: {amount!r}")
    text = format(value.normalize(), "f")
    return text


def yocto_to_near(amount: Union[int, str]) -> str:
    """Convert a yoctoNEAR balance (as returned by RPC) to a NEAR string"""
    return format_near_amount(Decimal(int(amount)) / YOCTO_PER_NEAR)


def parse_env_file(path: Union[str, Path]) -> Dict[str, str]:
    """Parse a KEY=value file such as neardev/dev-account.env

    Blank lines and # comments are ignored, an optional leading ``export``
    is stripped and matching surrounding quotes are removed.
    """
    path = Path(path)
    if not path.exists():
        raise EnvFileError(f"Environment file not found: {path}", path=str(path))

    data = {}
    with open(path, 'r') as f:
        for lineno, raw in enumerate(f, start=1):
            line = raw.strip()
            if not line or line.startswith('#'):
                continue
            if line.startswith("export "):
                line = line[len("export "):].strip()
            if '=' not in line:
                raise EnvFileError(
                    f"Malformed line {lineno} in {path}: {raw.rstrip()!r}",
                    path=str(path)
                )
            key, value = line.split('=', 1)
            key = key.strip()
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
                value = value[1:-1]
            data[key] = value
    return data
