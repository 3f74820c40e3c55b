"""
apkweaver: Repackage a template Android application into a branded game APK.

Decompiles a generic template APK, rewrites its identity (package name, display
name, version), injects the project's game content, then rebuilds, aligns and
signs the result.
"""

__version__ = "1.0.0"
__author__ = "apkweaver Team"
