"""APK alignment, signing and keystore creation."""

from .service import AlignerSigner

__all__ = ["AlignerSigner"]
