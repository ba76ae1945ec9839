"""
检验类别服务
"""
from datetime import datetime
from typing import List
import logging

from sqlalchemy.orm import Session

from app.models.ontology import Category
from app.models.schemas import CategoryCreate, CategoryUpdate
from app.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class CategoryService:
    """中心的检验类别"""

    def __init__(self, db: Session):
        self.db = db

    def _live(self, center_id: int):
        return self.db.query(Category).filter(
            Category.center_id == center_id,
            Category.deleted_at.is_(None),
        )

    def get_categories(self, center_id: int, include_inactive: bool = False) -> List[Category]:
        query = self._live(center_id)
        if not include_inactive:
            query = query.filter(Category.is_active.is_(True))
        return query.order_by(Category.sort_order.asc(), Category.name.asc()).all()

    def get_category(self, center_id: int, category_id: int) -> Category:
        category = self._live(center_id).filter(Category.id == category_id).first()
        if not category:
            raise NotFoundError("Category not found")
        return category

    def create_category(self, center_id: int, data: CategoryCreate) -> Category:
        category = Category(center_id=center_id, is_active=True, **data.model_dump())
        self.db.add(category)
        self.db.commit()
        self.db.refresh(category)
        logger.info(f"Category '{category.name}' created in center {center_id}")
        return category

    def update_category(self, center_id: int, category_id: int, data: CategoryUpdate) -> Category:
        category = self.get_category(center_id, category_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(category, key, value)
        self.db.commit()
        self.db.refresh(category)
        return category

    def delete_category(self, center_id: int, category_id: int) -> None:
        category = self.get_category(center_id, category_id)
        category.deleted_at = datetime.utcnow()
        category.is_active = False
        self.db.commit()

    def toggle_category(self, center_id: int, category_id: int) -> Category:
        category = self.get_category(center_id, category_id)
        category.is_active = not category.is_active
        self.db.commit()
        self.db.refresh(category)
        return category

    def reorder(self, center_id: int, ids: List[int]) -> List[Category]:
        """按 ids 中的位置设置 sort_order"""
        categories = {c.id: c for c in self._live(center_id).filter(Category.id.in_(ids)).all()}
        missing = [i for i in ids if i not in categories]
        if missing:
            raise ValidationError(f"Unknown categories: {missing}")
        for position, category_id in enumerate(ids):
            categories[category_id].sort_order = position
        self.db.commit()
        return self.get_categories(center_id, include_inactive=True)
