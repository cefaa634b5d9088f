"""Configuration constants for section matching and feedback reporting."""
from __future__ import annotations

import os


def _env_flag(name: str, default: str = "false") -> bool:
    # Anything other than an explicit truthy word counts as off
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


# Require the implicit year prefix to agree in the normalized fallback tier
STRICT_YEAR_PREFIX: bool = _env_flag("FEEDBACK_STRICT_YEAR_PREFIX")

# Unweighted faculty average under which a faculty member is flagged (admins only)
LOW_PERFORMANCE_THRESHOLD: float = float(
    os.getenv("FEEDBACK_LOW_PERFORMANCE_THRESHOLD", "3.0")
)

# Mean rating of a single response at or under which it counts as critical
CRITICAL_RATING_THRESHOLD: float = float(
    os.getenv("FEEDBACK_CRITICAL_RATING_THRESHOLD", "2.0")
)

# Faculty average under which a low-performance insight is "critical" instead of "high"
CRITICAL_SEVERITY_THRESHOLD: float = float(
    os.getenv("FEEDBACK_CRITICAL_SEVERITY_THRESHOLD", "2.5")
)

# Placeholder shown to faculty instead of raw free-text answers
REDACTED_TEXT: str = os.getenv("FEEDBACK_REDACTED_TEXT", "[redacted]")

# Maximum free-text answers rendered verbatim per question in markdown reports
MAX_TEXT_RESPONSES: int = int(os.getenv("FEEDBACK_MAX_TEXT_RESPONSES", "50"))
