"""Services package for apkweaver."""

from .content import ContentInjector
from .decompiler import DecompilerService
from .patcher import AssetPatcher
from .process import ProcessRunner
from .signing import AlignerSigner
from .tools import ToolLocator

__all__ = [
    "ContentInjector",
    "DecompilerService",
    "AssetPatcher",
    "ProcessRunner",
    "AlignerSigner",
    "ToolLocator",
]
