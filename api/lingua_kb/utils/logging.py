import logging
import re

_WHITESPACE = re.compile(r"\s+")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for scripts and long-running workers."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def excerpt(text: str, limit: int = 60) -> str:
    """
    Collapse whitespace and truncate text for log lines.

    Log records only ever carry an excerpt of user or FAQ content, never the
    full body.
    """
    flat = _WHITESPACE.sub(" ", text or "").strip()
    if len(flat) <= limit:
        return flat
    return flat[: limit - 1].rstrip() + "…"
