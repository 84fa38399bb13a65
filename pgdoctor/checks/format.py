"""
Human-readable formatting for sizes, counts and durations in findings.
"""

KIB = 1024
MIB = KIB * 1024
GIB = MIB * 1024


def format_bytes(num_bytes: int) -> str:
    """
    Размер в двоичных единицах: 512B, 1.5KiB, 3.0GiB.

    Args:
        num_bytes: Число байт

    Returns:
        Строка с одним знаком после запятой (кроме байт)
    """
    num_bytes = int(num_bytes)
    if num_bytes < KIB:
        return f"{num_bytes}B"
    value = num_bytes / KIB
    for unit in "KMGTPE":
        if value < KIB or unit == "E":
            return f"{value:.1f}{unit}iB"
        value /= KIB
    return f"{num_bytes}B"


def format_number(n: int) -> str:
    """Крупные числа: 1.5K, 2.0M, 1.2B."""
    if n >= 1_000_000_000:
        return f"{n / 1_000_000_000:.1f}B"
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 1_000:
        return f"{n / 1_000:.1f}K"
    return str(int(n))


def format_duration_ms(ms: float) -> str:
    if ms >= 3_600_000:
        return f"{ms / 3_600_000:.1f}h"
    if ms >= 60_000:
        return f"{ms / 60_000:.1f}m"
    if ms >= 1000:
        return f"{ms / 1000:.1f}s"
    return f"{ms:.0f}ms"


def format_duration_sec(seconds: int) -> str:
    """Длительность в самой крупной целой единице: 45s, 12m, 3h, 2d."""
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"
