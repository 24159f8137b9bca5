"""Menu-bar work-day tracker."""

__version__ = "0.1.0"

APP_NAME = "worktray"


def main(*args, **kwargs):
    from .app import main as _main
    return _main(*args, **kwargs)


__all__ = ["main", "APP_NAME", "__version__"]
