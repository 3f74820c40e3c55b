"""APKEditor decompile/recompile adapter."""

from .service import DecompilerService

__all__ = ["DecompilerService"]
