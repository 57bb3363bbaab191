"""Typed catalog records and the row format of a catalog sheet."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Iterable, Iterator, Mapping, Sequence
import json
import logging
import re

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
DEFAULT_CATEGORY = "Uncategorized"

# Column order of the catalog sheet header.
COLUMNS = (
    "name",
    "containerId",
    "displayName",
    "enabled",
    "description",
    "category",
    "tags",
)

_TRUE_VALUES = {"true", "1", "yes", "y", "on"}


def parse_bool(value: Any, default: bool = True) -> bool:
    """Interpret a sheet cell as a boolean (``TRUE``/``true``/``FALSE``...)."""

    if isinstance(value, bool):
        return value
    if value is None:
        return default
    text = str(value).strip()
    if not text:
        return default
    return text.lower() in _TRUE_VALUES


def format_bool(value: bool) -> str:
    return "TRUE" if value else "FALSE"


def parse_tags(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        pieces: Iterable[Any] = value.split(",")
    else:
        pieces = value
    return tuple(token for token in (str(piece).strip() for piece in pieces) if token)


def format_tags(tags: Iterable[str]) -> str:
    return ",".join(tags)


def is_valid_name(name: str) -> bool:
    return bool(NAME_PATTERN.match(name or ""))


@dataclass(frozen=True)
class Product:
    name: str
    container_id: str
    display_name: str = ""
    enabled: bool = True
    description: str = ""
    category: str = DEFAULT_CATEGORY
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.display_name:
            object.__setattr__(self, "display_name", self.name)
        if not self.category:
            object.__setattr__(self, "category", DEFAULT_CATEGORY)
        object.__setattr__(self, "tags", tuple(self.tags))

    def to_row(self) -> dict[str, str]:
        """Serialize to the string cells stored in a catalog sheet."""

        return {
            "name": self.name,
            "containerId": self.container_id,
            "displayName": self.display_name,
            "enabled": format_bool(self.enabled),
            "description": self.description,
            "category": self.category,
            "tags": format_tags(self.tags),
        }

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["tags"] = list(self.tags)
        return data

    def public_dict(self) -> dict[str, Any]:
        data = self.to_dict()
        data.pop("container_id")
        data.pop("enabled")
        return data

    def with_changes(self, **changes: Any) -> "Product":
        return replace(self, **changes)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Product | None":
        """Build a product from a sheet row, or ``None`` if required cells are blank."""

        name = str(row.get("name") or "").strip()
        container_id = str(row.get("containerId") or "").strip()
        if not name or not container_id:
            return None
        return cls(
            name=name,
            container_id=container_id,
            display_name=str(row.get("displayName") or "").strip(),
            enabled=parse_bool(row.get("enabled"), default=True),
            description=str(row.get("description") or "").strip(),
            category=str(row.get("category") or "").strip(),
            tags=parse_tags(row.get("tags")),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Product":
        return cls(
            name=data["name"],
            container_id=data["container_id"],
            display_name=data.get("display_name", ""),
            enabled=bool(data.get("enabled", True)),
            description=data.get("description", ""),
            category=data.get("category", DEFAULT_CATEGORY),
            tags=tuple(data.get("tags") or ()),
        )


@dataclass(frozen=True)
class Catalog:
    """Immutable, ordered list of products loaded from one source."""

    products: tuple[Product, ...] = ()
    source_id: str = ""
    _index: dict[str, Product] = field(default=None, init=False, repr=False, compare=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        object.__setattr__(self, "products", tuple(self.products))
        index: dict[str, Product] = {}
        for product in self.products:
            index.setdefault(product.name, product)
        object.__setattr__(self, "_index", index)

    def __iter__(self) -> Iterator[Product]:
        return iter(self.products)

    def __len__(self) -> int:
        return len(self.products)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def get(self, name: str) -> Product | None:
        """Case-sensitive lookup by product name."""

        return self._index.get(name)

    def find_casefold(self, name: str) -> Product | None:
        """Return a product whose name matches ignoring case."""

        target = (name or "").casefold()
        for product in self.products:
            if product.name.casefold() == target:
                return product
        return None

    def enabled(self) -> list[Product]:
        return [product for product in self.products if product.enabled]

    def names(self) -> list[str]:
        return [product.name for product in self.products]

    def to_json(self) -> str:
        return json.dumps(
            {"source_id": self.source_id, "products": [p.to_dict() for p in self.products]},
            sort_keys=True,
        )

    @classmethod
    def from_json(cls, payload: str) -> "Catalog":
        data = json.loads(payload)
        return cls(
            products=tuple(Product.from_dict(item) for item in data.get("products", [])),
            source_id=data.get("source_id", ""),
        )


def rows_to_dicts(table: Sequence[Sequence[str]]) -> list[dict[str, str]]:
    """Zip data rows with the header row; short rows are padded with blanks."""

    if not table:
        return []
    header = [str(cell).strip() for cell in table[0]]
    records: list[dict[str, str]] = []
    for row in table[1:]:
        padded = list(row) + [""] * (len(header) - len(row))
        records.append({column: padded[idx] for idx, column in enumerate(header) if column})
    return records


def parse_catalog(records: Iterable[Mapping[str, Any]], source_id: str = "") -> Catalog:
    products: list[Product] = []
    skipped = 0
    for record in records:
        product = Product.from_row(record)
        if product is None:
            skipped += 1
            continue
        products.append(product)
    if skipped:
        logger.info("Skipped %d catalog rows missing name or containerId", skipped)
    return Catalog(products=tuple(products), source_id=source_id)
