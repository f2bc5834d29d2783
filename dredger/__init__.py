"""Generate documentation comments for a repository with a local language model."""

__version__ = "0.1.0"
