from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional

from config import settings
from .schemas import Category, Product, ProductPage
from .transport import ApiTransport

logger = logging.getLogger(__name__)

PageFetcher = Callable[[int, int], Awaitable[ProductPage]]


def _page_params(
    page: int,
    limit: int,
    sort_by: Optional[str] = None,
    sort_direction: Optional[str] = None,
) -> Dict[str, str]:
    params = {"page": str(page), "limit": str(limit)}
    if sort_by:
        params["sortBy"] = sort_by
    if sort_direction:
        params["sortDirection"] = sort_direction
    return params


async def iter_pages(fetch_page: PageFetcher, limit: int) -> AsyncIterator[Product]:
    """Yield products page by page until the reported total is reached."""

    page = 1
    while True:
        result = await fetch_page(page, limit)
        for product in result.products:
            yield product
        if not result.products or page * limit >= result.total:
            return
        page += 1


class CatalogService:
    """Read-only access to the product catalog."""

    def __init__(self, transport: ApiTransport, page_size: int | None = None) -> None:
        self.transport = transport
        self.page_size = page_size or settings.page_size

    async def get_product(self, product_id: str) -> Product:
        data = await self.transport.get(f"/shop/products/id/{product_id}")
        return Product.model_validate(data)

    async def search(
        self,
        query: str = "",
        page: int = 1,
        limit: int = 10,
        sort_by: Optional[str] = None,
        sort_direction: Optional[str] = None,
    ) -> ProductPage:
        params = _page_params(page, limit, sort_by, sort_direction)
        if query:
            params["search"] = query
        data = await self.transport.get("/shop/products/search", params=params)
        return ProductPage.model_validate(data)

    async def categories(self) -> List[Category]:
        data = await self.transport.get("/shop/products/categories")
        return [Category.model_validate(item) for item in data or []]

    async def by_category(
        self,
        category_id: str,
        page: int = 1,
        limit: int = 10,
        sort_by: Optional[str] = None,
        sort_direction: Optional[str] = None,
    ) -> ProductPage:
        params = _page_params(page, limit, sort_by, sort_direction)
        data = await self.transport.get(f"/shop/products/category/{category_id}", params=params)
        return ProductPage.model_validate(data)

    async def brands(self) -> List[str]:
        data = await self.transport.get("/shop/products/brands")
        return [brand for brand in data or [] if isinstance(brand, str) and brand.strip()]

    async def by_brand(self, brand: str, page: int = 1, limit: int = 10) -> ProductPage:
        data = await self.transport.get(
            f"/shop/products/brand/{brand}", params=_page_params(page, limit)
        )
        return ProductPage.model_validate(data)

    async def all_in_category(self, category_id: str) -> List[Product]:
        async def fetch(page: int, limit: int) -> ProductPage:
            return await self.by_category(category_id, page=page, limit=limit)

        return [product async for product in iter_pages(fetch, self.page_size)]

    async def all_matching(self, query: str) -> List[Product]:
        async def fetch(page: int, limit: int) -> ProductPage:
            return await self.search(query, page=page, limit=limit)

        return [product async for product in iter_pages(fetch, self.page_size)]

    async def load_all(self) -> List[Product]:
        """Every product of every category, categories fetched concurrently."""

        categories = await self.categories()
        per_category = await asyncio.gather(
            *(self.all_in_category(category.id) for category in categories)
        )
        products = [product for batch in per_category for product in batch]
        logger.info(f"Loaded {len(products)} products from {len(categories)} categories")
        return products
