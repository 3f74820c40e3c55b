"""External tool discovery."""

from .service import InvocationProbe, SubprocessProbe, ToolLocator, first_existing, is_executable_file

__all__ = ["InvocationProbe", "SubprocessProbe", "ToolLocator", "first_existing", "is_executable_file"]
