"""Merging generated documentation back into source files."""

from .assembler import PatchAssembler
from .styles import COMMENT_STYLES, DEFAULT_STYLE, CommentStyle

__all__ = ["COMMENT_STYLES", "DEFAULT_STYLE", "CommentStyle", "PatchAssembler"]
