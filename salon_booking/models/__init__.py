from .tables import Base, metadata

__all__ = ["Base", "metadata"]
