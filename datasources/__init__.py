"""Data sources for the Bodega catalog."""

# Delay heavy imports to avoid circular dependencies
__all__ = ["SnapshotLoader", "SnapshotLoadError", "load_catalog"]

def __getattr__(name):  # pragma: no cover - simple lazy loader
    if name in __all__:
        from .snapshots import SnapshotLoader, SnapshotLoadError, load_catalog
        globals().update({
            "SnapshotLoader": SnapshotLoader,
            "SnapshotLoadError": SnapshotLoadError,
            "load_catalog": load_catalog,
        })
        return globals()[name]
    raise AttributeError(name)
