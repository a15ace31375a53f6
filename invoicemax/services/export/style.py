
import re

_SCALE_RE = re.compile(r"scale\(\s*([0-9.]+)")


def parse_style(style: str | None) -> dict[str, str]:
    """Parse an inline ``style`` attribute into an ordered dict of declarations."""
    declarations = {}
    for chunk in (style or "").split(";"):
        if ":" not in chunk:
            continue
        name, value = chunk.split(":", 1)
        declarations[name.strip().lower()] = value.strip()
    return declarations


def format_style(declarations: dict[str, str]) -> str:
    return "; ".join(f"{name}: {value}" for name, value in declarations.items())


def transform_scale(declarations: dict[str, str]) -> float:
    """Uniform scale factor of a CSS ``transform`` (only ``scale(...)`` is honoured)."""
    match = _SCALE_RE.search(declarations.get("transform", ""))
    if not match:
        return 1.0
    try:
        value = float(match.group(1))
    except ValueError:
        return 1.0
    return value if value > 0 else 1.0
