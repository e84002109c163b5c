"""
ESU Activation Agent - Utilities Module
"""

from .slmgr import LicenseManagerTool, ToolResult, mask_product_key
from .system import is_admin, get_os_major_version

__all__ = ["LicenseManagerTool", "ToolResult", "mask_product_key", "is_admin", "get_os_major_version"]
