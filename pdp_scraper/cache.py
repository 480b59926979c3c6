import hashlib
from pathlib import Path
from typing import List, Optional, Protocol

import orjson

from .schema import Product

RAW = Path("data/raw_html")


def key_for(url: str) -> str:
    return hashlib.sha1(url.encode()).hexdigest()


def load_raw(url: str, root: Path = RAW) -> Optional[str]:
    p = root / f"{key_for(url)}.html"
    return p.read_text(encoding="utf-8") if p.exists() else None


def save_raw(url: str, html: str, root: Path = RAW):
    root.mkdir(parents=True, exist_ok=True)
    (root / f"{key_for(url)}.html").write_text(html, encoding="utf-8")


class ResultSink(Protocol):
    def emit(self, product: Product) -> None: ...


class JsonlSink:
    """One JSON line per page, written as it arrives."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.count = 0

    def emit(self, product: Product) -> None:
        with open(self.path, "ab") as f:
            f.write(orjson.dumps(product.to_record()) + b"\n")
        self.count += 1


class MemorySink:
    def __init__(self):
        self.records: List[Product] = []

    def emit(self, product: Product) -> None:
        self.records.append(product)


def read_jsonl(path: Path) -> List[dict]:
    with open(path, "rb") as f:
        return [orjson.loads(line) for line in f if line.strip()]
