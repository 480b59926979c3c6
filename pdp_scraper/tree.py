"""
Depth-bounded search over JSON-like object graphs (dicts and lists), used to
dig values out of framework state without knowing its exact shape.
"""
import re
from collections import deque
from typing import Any, Callable, Iterator, List, Optional

KeyPredicate = Callable[[str], bool]

IMAGE_KEY = re.compile(r"image|gallery|photo|picture|media", re.I)
URL_KEYS = ("url", "src", "original", "href")


def iter_values(obj: Any, key_predicate: KeyPredicate, max_depth: int = 6) -> Iterator[Any]:
    """Yield values stored under keys matching `key_predicate`, breadth first."""
    frontier = deque([(obj, 0)])
    seen = set()
    while frontier:
        node, depth = frontier.popleft()
        if id(node) in seen:
            continue
        seen.add(id(node))
        if isinstance(node, dict):
            for key, value in node.items():
                if isinstance(key, str) and key_predicate(key):
                    yield value
                if depth < max_depth and isinstance(value, (dict, list)):
                    frontier.append((value, depth + 1))
        elif isinstance(node, list) and depth < max_depth:
            for value in node:
                if isinstance(value, (dict, list)):
                    frontier.append((value, depth + 1))


def find_first(
    obj: Any,
    key_predicate: KeyPredicate,
    max_depth: int = 6,
    accept: Callable[[Any], Any] = None,
) -> Optional[Any]:
    """
    First value under a matching key. With `accept`, the value is passed
    through it and the first non-None result is returned instead.
    """
    for value in iter_values(obj, key_predicate, max_depth):
        if accept is None:
            if value is not None:
                return value
            continue
        out = accept(value)
        if out is not None:
            return out
    return None


def keys(*names: str) -> KeyPredicate:
    wanted = set(names)
    return lambda k: k in wanted


def _urls_in(value: Any, depth: int) -> List[str]:
    if isinstance(value, str):
        return [value]
    if depth <= 0:
        return []
    if isinstance(value, dict):
        for k in URL_KEYS:
            if isinstance(value.get(k), str):
                return [value[k]]
        return []
    if isinstance(value, list):
        out = []
        for v in value:
            out.extend(_urls_in(v, depth - 1))
        return out
    return []


def collect_image_urls(obj: Any, max_depth: int = 6) -> List[str]:
    """URL strings found under image/gallery/photo/picture-like keys."""
    out: List[str] = []
    for value in iter_values(obj, lambda k: bool(IMAGE_KEY.search(k)), max_depth):
        out.extend(u for u in _urls_in(value, 2) if u.startswith(("http", "/")))
    return out
