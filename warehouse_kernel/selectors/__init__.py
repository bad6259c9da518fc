"""Read-only selectors."""

from warehouse_kernel.selectors.base import BaseSelector
from warehouse_kernel.selectors.storage_selector import StorageSelector

__all__ = ["BaseSelector", "StorageSelector"]
