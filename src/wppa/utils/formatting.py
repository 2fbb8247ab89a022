from typing import Any


def fmt_percent(x):
    try:
        return f"{float(x):.1f}%"
    except Exception:
        return "N/A"


def fmt_bytes(num_bytes: Any) -> str:
    """
    Format a byte value into a human-friendly string (KB, MB, GB).
    Always uses binary units (1 KB = 1024 B).
    """
    try:
        v = float(num_bytes)
    except (TypeError, ValueError):
        return "N/A"

    units = ["B", "KB", "MB", "GB", "TB"]
    idx = 0
    while v >= 1024 and idx < len(units) - 1:
        v /= 1024.0
        idx += 1

    if v >= 100 or idx == 0:
        return f"{v:.0f} {units[idx]}"
    elif v >= 10:
        return f"{v:.1f} {units[idx]}"
    else:
        return f"{v:.2f} {units[idx]}"


def fmt_seconds_ms(seconds: Any) -> str:
    """Format a duration given in seconds as milliseconds, e.g. '12.34 ms'."""
    try:
        return f"{float(seconds) * 1000.0:.2f} ms"
    except (TypeError, ValueError):
        return "N/A"


def truncate_text(s: str, max_len: int = 80) -> str:
    """
    Truncate long text (queries, URLs) keeping the head, which carries
    the statement type and table names.
    """
    if not isinstance(s, str):
        s = str(s)
    s = " ".join(s.split())
    if len(s) <= max_len:
        return s
    return s[: max_len - 1] + "…"
