"""Identity rewriting over decompiled trees."""

from .service import AssetPatcher, Substitution, identity_substitutions

__all__ = ["AssetPatcher", "Substitution", "identity_substitutions"]
