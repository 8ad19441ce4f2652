"""
Storage Service Layer
Database operations for the import pipeline, seeders and admin endpoints
"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select, delete, func, desc, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import logging

from database import (
    AsyncSessionLocal, Category, Product, ProductImage, ProductMetaTag, Review,
    Order, OrderItem, OrderTracking, HomepageSection, ImportRun,
)
from services.errors import PersistenceError
from services.record_builder import OrderGraph, ProductGraph
from utils import is_transient_error, retry_async

logger = logging.getLogger(__name__)


class StorageService:
    """Storage service providing database operations"""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self._session_factory = session_factory

    def get_session(self) -> AsyncSession:
        """Get database session context manager"""
        factory = self._session_factory or AsyncSessionLocal
        return factory()

    # ---------- Import runs ----------

    async def create_import_run(self, run_data: Dict[str, Any]) -> ImportRun:
        """Create new import run record"""
        async with self.get_session() as session:
            run = ImportRun(**run_data)
            session.add(run)
            await session.commit()
            await session.refresh(run)
            return run

    async def get_import_run(self, run_id: str) -> Optional[ImportRun]:
        async with self.get_session() as session:
            return await session.get(ImportRun, run_id)

    async def update_import_run(self, run_id: str, updates: Dict[str, Any]) -> Optional[ImportRun]:
        """Update import run record"""
        if not run_id:
            return None
        async with self.get_session() as session:
            run = await session.get(ImportRun, run_id)
            if run:
                for key, value in updates.items():
                    setattr(run, key, value)
                await session.commit()
                await session.refresh(run)
            return run

    async def get_recent_import_runs(self, limit: int = 10) -> List[ImportRun]:
        async with self.get_session() as session:
            query = select(ImportRun).order_by(desc(ImportRun.created_at)).limit(limit)
            result = await session.execute(query)
            return list(result.scalars().all())

    # ---------- Products ----------

    async def get_product_refs(self) -> List[Tuple[int, str]]:
        """(id, name) for every product, ascending id. Used as the resolver snapshot."""
        async with self.get_session() as session:
            result = await session.execute(select(Product.id, Product.name).order_by(Product.id))
            return [(row.id, row.name) for row in result]

    async def count_products(self) -> int:
        async with self.get_session() as session:
            result = await session.execute(select(func.count()).select_from(Product))
            return int(result.scalar() or 0)

    async def get_products(self, limit: Optional[int] = None) -> List[Product]:
        async with self.get_session() as session:
            query = (
                select(Product)
                .options(
                    selectinload(Product.images),
                    selectinload(Product.meta_tags),
                    selectinload(Product.reviews),
                )
                .order_by(Product.id)
            )
            if limit:
                query = query.limit(limit)
            result = await session.execute(query)
            return list(result.scalars().all())

    async def clear_products(self) -> Dict[str, int]:
        """Delete all products and their images, meta tags and reviews in one transaction."""
        counts: Dict[str, int] = {}
        async with self.get_session() as session:
            async with session.begin():
                # SQLite does not enforce ON DELETE without PRAGMA foreign_keys
                await session.execute(
                    update(OrderItem).where(OrderItem.product_id.is_not(None)).values(product_id=None)
                )
                for model in (Review, ProductMetaTag, ProductImage, Product):
                    result = await session.execute(delete(model))
                    counts[model.__tablename__] = result.rowcount or 0
        logger.info(f"Cleared products and dependents: {counts}")
        return counts

    async def persist_product_graph(self, graph: ProductGraph) -> int:
        """Write product + image + meta tags + review atomically; returns the product id."""
        try:
            return await self._write_product_graph(graph)
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"product write failed: {e.__class__.__name__}: {str(e)[:200]}",
                transient=is_transient_error(e),
                line_number=graph.line_number,
            ) from e

    @retry_async(max_retries=2, base_delay=0.2)
    async def _write_product_graph(self, graph: ProductGraph) -> int:
        record = graph.product
        async with self.get_session() as session:
            async with session.begin():
                product = Product(
                    name=record.name,
                    price=record.price,
                    description=record.description,
                    category=record.category,
                    category_id=record.category_id,
                    stock=record.stock,
                    main_image=record.main_image,
                    avg_rating=record.avg_rating,
                    meta_description=record.meta_description,
                    meta_title=record.meta_title,
                    created_at=record.created_at,
                    updated_at=record.updated_at,
                )
                product.images = [
                    ProductImage(image_path=img.image_path, is_main=img.is_main) for img in graph.images
                ]
                product.meta_tags = [ProductMetaTag(tag=t.tag) for t in graph.meta_tags]
                if graph.review is not None:
                    review = graph.review
                    product.reviews = [Review(
                        name=review.name,
                        rating=review.rating,
                        comment=review.comment,
                        is_anonymous=review.is_anonymous,
                        created_at=review.created_at,
                        updated_at=review.updated_at,
                    )]
                session.add(product)
                await session.flush()
                return product.id

    # ---------- Orders ----------

    async def persist_order_graph(self, graph: OrderGraph) -> int:
        """Write order + items + tracking atomically; returns the order id."""
        try:
            return await self._write_order_graph(graph)
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"order write failed: {e.__class__.__name__}: {str(e)[:200]}",
                transient=is_transient_error(e),
                line_number=graph.line_number,
            ) from e

    @retry_async(max_retries=2, base_delay=0.2)
    async def _write_order_graph(self, graph: OrderGraph) -> int:
        record = graph.order
        async with self.get_session() as session:
            async with session.begin():
                order = Order(
                    user_id=record.user_id,
                    name=record.name,
                    email=record.email,
                    shipping_address=record.shipping_address,
                    mobile=record.mobile,
                    total=record.total,
                    status=record.status,
                    created_at=record.created_at,
                    updated_at=record.updated_at,
                )
                order.items = [
                    OrderItem(
                        product_id=item.product_id,
                        name=item.name,
                        quantity=item.quantity,
                        price=item.price,
                        image=item.image,
                    )
                    for item in graph.items
                ]
                if graph.tracking is not None:
                    tracking = graph.tracking
                    order.tracking = OrderTracking(
                        tracking_id=tracking.tracking_id,
                        partner_id=tracking.partner_id,
                        status=tracking.status,
                        details=tracking.details,
                        created_at=tracking.created_at,
                        updated_at=tracking.updated_at,
                    )
                session.add(order)
                await session.flush()
                return order.id

    async def get_orders_with_items(self, limit: Optional[int] = None) -> List[Order]:
        async with self.get_session() as session:
            query = (
                select(Order)
                .options(selectinload(Order.items), selectinload(Order.tracking))
                .order_by(Order.id)
            )
            if limit:
                query = query.limit(limit)
            result = await session.execute(query)
            return list(result.scalars().all())

    # ---------- Categories ----------

    async def get_category_map(self) -> Dict[str, int]:
        """name -> id for every category, ascending id."""
        async with self.get_session() as session:
            result = await session.execute(select(Category.id, Category.name).order_by(Category.id))
            return {row.name: row.id for row in result}

    async def get_categories(self) -> List[Category]:
        async with self.get_session() as session:
            result = await session.execute(
                select(Category).order_by(Category.parent_id.is_not(None), Category.sort_order, Category.id)
            )
            return list(result.scalars().all())

    async def get_category_slugs(self) -> set:
        async with self.get_session() as session:
            result = await session.execute(select(Category.slug))
            return set(result.scalars().all())

    async def find_category(self, name: str, parent_id: Optional[int]) -> Optional[Category]:
        async with self.get_session() as session:
            query = select(Category).where(Category.name == name)
            if parent_id is None:
                query = query.where(Category.parent_id.is_(None))
            else:
                query = query.where(Category.parent_id == parent_id)
            result = await session.execute(query.order_by(Category.id).limit(1))
            return result.scalars().first()

    async def create_category(self, category_data: Dict[str, Any]) -> Category:
        async with self.get_session() as session:
            if category_data.get("parent_id") is not None:
                parent = await session.get(Category, category_data["parent_id"])
                if parent is None:
                    raise ValueError(f"Parent category {category_data['parent_id']} does not exist")
                if parent.parent_id is not None:
                    raise ValueError(f"Category '{category_data.get('name')}' would be nested deeper than two levels")
            category = Category(**category_data)
            session.add(category)
            await session.commit()
            await session.refresh(category)
            return category

    async def assign_product_categories(self, resolve: Callable[[str], Optional[int]]) -> int:
        """Set category_id on every product from its free-text label; returns rows changed."""
        changed = 0
        async with self.get_session() as session:
            async with session.begin():
                result = await session.execute(select(Product.id, Product.category, Product.category_id))
                for row in result.all():
                    category_id = resolve(row.category)
                    if category_id is not None and category_id != row.category_id:
                        await session.execute(
                            update(Product).where(Product.id == row.id).values(category_id=category_id)
                        )
                        changed += 1
        logger.info(f"Assigned categories to {changed} products")
        return changed

    # ---------- Homepage sections ----------

    async def create_homepage_section(self, section_data: Dict[str, Any]) -> HomepageSection:
        async with self.get_session() as session:
            section = HomepageSection(**section_data)
            session.add(section)
            await session.commit()
            await session.refresh(section)
            return section

    async def get_homepage_sections(self) -> List[HomepageSection]:
        async with self.get_session() as session:
            result = await session.execute(select(HomepageSection).order_by(HomepageSection.id))
            return list(result.scalars().all())

    async def get_homepage_section_names(self) -> set:
        async with self.get_session() as session:
            result = await session.execute(select(HomepageSection.section_name))
            return set(result.scalars().all())

    async def delete_homepage_sections(self, section_ids: Iterable[int]) -> int:
        ids = list(section_ids)
        if not ids:
            return 0
        async with self.get_session() as session:
            async with session.begin():
                result = await session.execute(
                    delete(HomepageSection).where(HomepageSection.id.in_(ids))
                )
                return result.rowcount or 0

    async def get_active_sections(self) -> List[HomepageSection]:
        """Active sections ordered by sort_order, then id."""
        async with self.get_session() as session:
            result = await session.execute(
                select(HomepageSection)
                .where(HomepageSection.is_active.is_(True))
                .order_by(HomepageSection.sort_order, HomepageSection.id)
            )
            return list(result.scalars().all())

    async def get_section_by_name(self, section_name: str) -> Optional[HomepageSection]:
        """First active section with this name (lowest id wins when duplicates exist)."""
        async with self.get_session() as session:
            result = await session.execute(
                select(HomepageSection)
                .where(
                    HomepageSection.section_name == section_name,
                    HomepageSection.is_active.is_(True),
                )
                .order_by(HomepageSection.id)
                .limit(1)
            )
            return result.scalars().first()


# Global storage instance
storage = StorageService()
