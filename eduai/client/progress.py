"""Per-topic completion tracking kept only in local storage."""
from typing import Dict, List

from eduai.client.local_storage import LocalStorage
from eduai.services.topic_store import LEVELS, progress_key


def item_key(level: str, index: int) -> str:
    return f"{level}-{index}"


def load_progress(storage: LocalStorage, slug: str) -> Dict[str, bool]:
    progress = storage.get_item(progress_key(slug), {})
    return progress if isinstance(progress, dict) else {}


def set_item_done(storage: LocalStorage, slug: str, level: str, index: int, done: bool = True) -> Dict[str, bool]:
    progress = load_progress(storage, slug)
    progress[item_key(level, index)] = bool(done)
    storage.set_item(progress_key(slug), progress)
    return progress


def level_completion(content: Dict[str, List[str]], progress: Dict[str, bool], level: str) -> int:
    """Percentage of the level's points marked done, rounded; 0 for an empty level."""
    items = content.get(level) or []
    if not items:
        return 0
    done = sum(1 for index in range(len(items)) if progress.get(item_key(level, index)))
    return round(done / len(items) * 100)


def overall_completion(content: Dict[str, List[str]], progress: Dict[str, bool]) -> int:
    total = sum(len(content.get(level) or []) for level in LEVELS)
    if not total:
        return 0
    done = sum(
        1
        for level in LEVELS
        for index in range(len(content.get(level) or []))
        if progress.get(item_key(level, index))
    )
    return round(done / total * 100)
