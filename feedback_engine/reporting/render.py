"""Render rollup views using Jinja2 templates."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

from jinja2 import Environment, FileSystemLoader

from feedback_engine import config
from feedback_engine.reporting.models import RollupView

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).parent / "templates"

# Markdown templates don’t need HTML escaping – it breaks apostrophes etc.
_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
)

# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def _rating_bar(distribution: Dict[int, int], width: int = 20) -> str:
    """Return a ``1:█ 2:██ …`` bar scaled so the largest bucket is *width* wide."""
    peak = max(distribution.values(), default=0) or 1
    parts = []
    for rating in sorted(distribution):
        count = distribution[rating]
        bar = "█" * max(1 if count else 0, round(count / peak * width))
        parts.append(f"{rating}:{bar or '·'}")
    return " ".join(parts)


def _fmt_avg(value: Any) -> str:
    return "n/a" if value is None else f"{value:.2f}"


def _fmt_trend(value: float) -> str:
    return f"{value:+.2f}"


def _text_items(items: List[str], *, limit: int | None = None) -> List[str]:
    limit = config.MAX_TEXT_RESPONSES if limit is None else limit
    return items[:limit]


_env.filters["rating_bar"] = _rating_bar
_env.filters["avg"] = _fmt_avg
_env.filters["trend"] = _fmt_trend
_env.filters["text_items"] = _text_items

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def render_rollup(view: RollupView) -> str:
    """Render a markdown report from a :class:`RollupView`."""
    template = _env.get_template("rollup.md.j2")
    text = template.render(view=view, groups=view.groups)
    logger.debug(
        "Rendered %s rollup for %s (%d group(s), len=%d)",
        view.group_by.value,
        view.viewer_role.value,
        len(view.groups),
        len(text),
    )
    return text
