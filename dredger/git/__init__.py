"""Git and pull request submission helpers."""

from .publisher import Publisher

__all__ = ["Publisher"]
