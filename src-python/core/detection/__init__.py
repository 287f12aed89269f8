"""Detection package."""


def __getattr__(name: str):
    """Lazy re-export so that ``from core.detection import detect_page``
    works without compiling the rule vocabulary at package import time."""
    if name in ("detect_page", "detect_document"):
        from core.detection import pipeline
        return getattr(pipeline, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
