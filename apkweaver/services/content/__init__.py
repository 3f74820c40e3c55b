"""Engine and game content injection."""

from .service import ContentInjector, InjectionReport

__all__ = ["ContentInjector", "InjectionReport"]
