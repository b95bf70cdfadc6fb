"""URL slug helpers for topic titles."""
import re
from dataclasses import dataclass
from typing import Iterable, Optional

DEFAULT_SLUG = "topic"

_STRIP_RE = re.compile(r"[^\w\s-]", re.ASCII)
_SEPARATOR_RE = re.compile(r"[\s_-]+")


@dataclass(frozen=True)
class SlugResult:
    """Outcome of a unique-slug search; ``slug`` is None when exhausted."""
    slug: Optional[str]

    @property
    def ok(self) -> bool:
        return self.slug is not None


def slugify(text: str) -> str:
    """
    Derive a URL-safe slug from free text.

    "Java Basics!" -> "java-basics". Non-ASCII word characters are dropped;
    text with nothing usable left becomes ``"topic"``.
    """
    value = _STRIP_RE.sub("", (text or "").strip().lower())
    value = _SEPARATOR_RE.sub("-", value).strip("-")
    return value or DEFAULT_SLUG


def generate_unique_slug(base: str, existing: Iterable[str], max_attempts: int = 10) -> SlugResult:
    """
    Pick the first free slug among ``base``, ``base-1``, ``base-2``, ...

    At most ``max_attempts`` candidates are tried, ``base`` included.
    """
    taken = set(existing)
    for attempt in range(max_attempts):
        candidate = base if attempt == 0 else f"{base}-{attempt}"
        if candidate not in taken:
            return SlugResult(candidate)
    return SlugResult(None)
