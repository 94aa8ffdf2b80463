import os
import sys
from pathlib import Path

APP_DIR_NAME = "DnD Character Builder"


def get_writable_dir(sub_dir: str = "logs") -> Path:
    """Get a writable directory path, standardizing on AppData or local files."""
    is_frozen = getattr(sys, "frozen", False) or "__compiled__" in globals()

    if is_frozen:
        app_data = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA") or os.path.expanduser("~")
        base_dir = Path(app_data) / APP_DIR_NAME
    else:
        # Resolve relative to the backend root (parent of 'utils')
        base_dir = Path(__file__).parent.parent

    target_dir = base_dir / sub_dir

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        test_file = target_dir / ".write_test"
        test_file.touch()
        test_file.unlink()
        return target_dir
    except (PermissionError, OSError):
        # Fallback to the user data dir if the backend tree is read-only
        if not is_frozen:
            app_data = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA") or os.path.expanduser("~")
            target_dir = Path(app_data) / APP_DIR_NAME / sub_dir
            target_dir.mkdir(parents=True, exist_ok=True)
            return target_dir
        raise
