from typing import Iterable, List, TypeVar

T = TypeVar('T')


def first_line(text: str) -> str:
    """First non-blank line of text, stripped."""
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""


def plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def dedupe(items: Iterable[T]) -> List[T]:
    """Drop repeated items, keeping first-seen order."""
    seen: List[T] = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen
