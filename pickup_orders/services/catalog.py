"""Product lookups for order placement and replacements."""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import PersistenceError
from ..models import Product

logger = logging.getLogger(__name__)


class ProductCatalog:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: str) -> Optional[Product]:
        """Active product by id, or None. Inactive products count as missing."""
        if not product_id:
            return None
        try:
            product = self.db.get(Product, product_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to read product: {e}") from e

        if product is None or not product.is_active:
            logger.debug("Product %s not found or inactive", product_id)
            return None
        return product
