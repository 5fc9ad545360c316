from .bridge import SandboxBridge
from .policy import check_script

__all__ = ["SandboxBridge", "check_script"]
