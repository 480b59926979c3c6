from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Tuple

SelectorTable = Mapping[str, Tuple[str, ...]]

FIELDS = ("title", "description", "price", "currency", "sku", "images")


@dataclass(frozen=True)
class SiteProfile:
    """
    Everything site-specific about extraction: the selector table plus the
    optional overrides the selector reader consults for this site only.
    """

    name: str
    domains: Tuple[str, ...]
    selectors: SelectorTable
    # extra admission test for image URLs, on top of the universal filter
    image_filter: Optional[Callable[[str], bool]] = None
    # walk script state for gallery-like keys when the DOM gallery is short
    search_state_images: bool = False
    # CDN hosts re-scanned after scrolling, enables the lazy-load pass
    lazy_image_hosts: Tuple[str, ...] = ()
    # locale segment -> currency, consulted before the shared table
    country_currency: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    # galleries shorter than this trigger the recall passes above
    min_gallery_images: int = 1

    def selectors_for(self, name: str) -> Tuple[str, ...]:
        return tuple(self.selectors.get(name, ()))


def table(**fields) -> SelectorTable:
    unknown = set(fields) - set(FIELDS)
    if unknown:
        raise ValueError(f"unknown selector fields: {sorted(unknown)}")
    return MappingProxyType({k: tuple(v) for k, v in fields.items()})
