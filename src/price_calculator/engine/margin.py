"""
Margin labels - rendering and parsing of the stored payment type label.

History rows keep a display label ("Cash", "Tempo 30 hari"). New rows also
store the structured payment type and term; label parsing only covers rows
written before those columns existed.
"""
import re
from typing import Optional

from ..config.settings import DEFAULT_TEMPO_TERM
from .models import ProfitMargin, CASH, TEMPO

TEMPO_LABEL_PATTERN = re.compile(r"Tempo (\d+) hari")


def margin_label(margin: ProfitMargin) -> str:
    """Display label for a margin configuration."""
    if margin.payment_type == TEMPO:
        return f"Tempo {margin.tempo_term_days} hari"
    return "Cash"


def parse_margin_label(label: Optional[str]) -> tuple[str, Optional[int]]:
    """
    Recover (payment_type, tempo_term_days) from a stored label.

    Labels starting with "Tempo" are tempo; the day count falls back to the
    default term when it cannot be matched. Everything else is cash.
    """
    if not label or not label.startswith("Tempo"):
        return CASH, None
    match = TEMPO_LABEL_PATTERN.search(label)
    return TEMPO, int(match.group(1)) if match else DEFAULT_TEMPO_TERM


def is_tempo_label(label: Optional[str]) -> bool:
    """Loose check used by list filters."""
    return bool(label) and "tempo" in label.lower()
