import logging

from sqlalchemy import select

from ..errors import CategoryNotFound, ConflictError, HasDependents, ValidationError
from ..models import Category, Report
from ..policy import authorize
from ..security import Identity
from ..store import EntityStore, Operation, new_id

logger = logging.getLogger(__name__)


class CategoryService:
    def __init__(self, store: EntityStore):
        self.store = store

    def list(self) -> list[Category]:
        return self.store.query("categories", order_by=Category.name)

    def get(self, category_id: str) -> Category:
        return self.store.get("categories", category_id, missing=CategoryNotFound())

    def create(self, actor: Identity, name: str) -> Category:
        authorize(actor, "categories.write")
        name = _clean(name)
        category = self.store.transact([
            Operation.put("categories", new_id("cat"), {"name": name, "updated_by": actor.id},
                          conflict=ConflictError("Category name already exists")),
        ])[0]
        logger.info("Category %s (%s) created by %s", category.id, name, actor.id)
        return category

    def update(self, actor: Identity, category_id: str, name: str) -> Category:
        authorize(actor, "categories.write")
        name = _clean(name)
        self.get(category_id)
        taken = select(Category.id).where(Category.name == name, Category.id != category_id)
        return self.store.transact([
            Operation.absent("categories", taken, ConflictError("Category name already exists")),
            Operation.update("categories", category_id, {"name": name, "updated_by": actor.id},
                             missing=CategoryNotFound()),
        ])[-1]

    def delete(self, actor: Identity, category_id: str) -> None:
        authorize(actor, "categories.write")
        self.get(category_id)
        in_use = select(Report.id).where(Report.category_id == category_id)
        self.store.transact([
            Operation.absent("reports", in_use, HasDependents("Category is still used by reports")),
            Operation.delete("categories", category_id, missing=CategoryNotFound()),
        ])
        logger.info("Category %s deleted by %s", category_id, actor.id)


def _clean(name) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name is required")
    return name
