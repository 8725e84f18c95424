"""Product data and the stores the products handlers read from."""

from __future__ import annotations

import threading
from typing import Protocol

from pydantic import BaseModel, ConfigDict


class Product(BaseModel):
    # NaN and infinities have no JSON spelling
    model_config = ConfigDict(allow_inf_nan=False)

    id: int | None = None
    name: str
    image_url: str
    price: float


def seed_products() -> list[Product]:
    """Return a fresh copy of the six seed products."""
    return [
        Product(id=1, name="Lorem ipsum dolor", image_url="https://picsum.photos/210/300", price=39.99),
        Product(id=2, name="Donec rutrum dui", image_url="https://picsum.photos/220/300", price=59.99),
        Product(id=3, name="Mauris imperdiet massa", image_url="https://picsum.photos/230/300", price=29.99),
        Product(id=4, name="Sed tristique tellus", image_url="https://picsum.photos/240/300", price=9.99),
        Product(id=5, name="Vivamus tempus", image_url="https://picsum.photos/250/300", price=49.99),
        Product(id=6, name="Aliquam rutrum viverra", image_url="https://picsum.photos/260/300", price=19.99),
    ]


class ProductStore(Protocol):
    def list(self) -> list[Product]: ...

    def append(self, product: Product) -> list[Product]:
        """Add ``product`` with ``id`` set to the current count and return the full list."""
        ...


def _with_next_id(products: list[Product], product: Product) -> Product:
    # Ids are positional and not checked for collisions
    return product.model_copy(update={"id": len(products)})


class SeedProductStore:
    """Every call starts from the seed list; appends only show up in the returned list."""

    def list(self) -> list[Product]:
        return seed_products()

    def append(self, product: Product) -> list[Product]:
        products = seed_products()
        products.append(_with_next_id(products, product))
        return products


class InMemoryProductStore:
    """Seed list plus everything appended since the store was created."""

    def __init__(self, products: list[Product] | None = None) -> None:
        self._lock = threading.Lock()
        self._products = list(products) if products is not None else seed_products()

    def list(self) -> list[Product]:
        with self._lock:
            return [p.model_copy() for p in self._products]

    def append(self, product: Product) -> list[Product]:
        with self._lock:
            self._products.append(_with_next_id(self._products, product))
            return [p.model_copy() for p in self._products]


def build_store(kind: str) -> ProductStore:
    """Map the ``ARP_PRODUCT_STORE`` setting to a store instance."""
    if kind == "memory":
        return InMemoryProductStore()
    if kind == "seed":
        return SeedProductStore()
    raise ValueError(f"Unknown product store: {kind!r}")
