"""
Product catalog reads.

The catalog is maintained by a separate admin screen; reconciliation and
billing only read it.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from models.product import ProductResponse, ProductStatus
from exceptions import (
    ProductNotFoundError,
    DatabaseError
)

logger = structlog.get_logger(__name__)


class ProductService:
    """
    Product catalog access.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "products"

    def get_active(self) -> list[ProductResponse]:
        """
        Get all active products ordered by name.

        Returns:
            List of active products
        """
        logger.debug("getting_active_products")

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("status", ProductStatus.ACTIVE.value)
                .order("name")
                .execute()
            )

            products = [ProductResponse(**row) for row in result.data]

            logger.info("products_retrieved", count=len(products))
            return products

        except Exception as e:
            logger.error("get_products_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_catalog(self, product_ids: Optional[set[str]] = None) -> dict[str, ProductResponse]:
        """
        Active products keyed by id.

        Args:
            product_ids: Extra ids to include even if inactive (products
                sold or loaded earlier and deactivated since)
        """
        catalog = {p.id: p for p in self.get_active()}

        missing = sorted((product_ids or set()) - catalog.keys())
        if missing:
            try:
                result = (
                    self.db.table(self.table)
                    .select("*")
                    .in_("id", missing)
                    .execute()
                )
                for row in result.data:
                    product = ProductResponse(**row)
                    catalog[product.id] = product
            except Exception as e:
                logger.error("get_inactive_products_failed", error=str(e), ids=missing)
                raise DatabaseError("select", str(e))

        return catalog

    def get_by_id(self, product_id: str) -> ProductResponse:
        """
        Get a single product by ID.

        Raises:
            ProductNotFoundError: If product doesn't exist
        """
        logger.debug("getting_product", product_id=product_id)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", product_id)
                .limit(1)
                .execute()
            )

            if not result.data:
                raise ProductNotFoundError(product_id)

            return ProductResponse(**result.data[0])

        except ProductNotFoundError:
            raise
        except Exception as e:
            logger.error("get_product_failed", product_id=product_id, error=str(e))
            raise DatabaseError("select", str(e))


# Singleton instance
_product_service: Optional[ProductService] = None


def get_product_service() -> ProductService:
    """Get or create ProductService instance."""
    global _product_service
    if _product_service is None:
        _product_service = ProductService()
    return _product_service
