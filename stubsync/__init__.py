"""stubsync -- keep a directory of per-package type stubs in sync with the manifest."""

__version__ = "0.4.0"
