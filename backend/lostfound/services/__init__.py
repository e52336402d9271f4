from .accounts import AccountService
from .categories import CategoryService
from .lifecycle import LifecycleManager

__all__ = ["AccountService", "CategoryService", "LifecycleManager"]
