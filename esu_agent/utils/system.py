import sys
from typing import Optional


def is_admin() -> bool:
    """Check whether the current process runs elevated; always False off Windows."""
    if sys.platform != 'win32':
        return False
    try:
        import ctypes
        return bool(ctypes.windll.shell32.IsUserAnAdmin())
    except Exception:
        return False


def get_os_major_version() -> Optional[int]:
    """Windows major version (Windows 11 also reports 10); None off Windows."""
    if sys.platform != 'win32':
        return None
    try:
        return sys.getwindowsversion().major
    except Exception:
        return None
