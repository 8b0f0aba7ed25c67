"""contentreg - metered, permissioned content registry."""

__version__ = "0.1.0"

from .charging import Operation, cost
from .errors import ErrorKind
from .events import RegistryEvent
from .permissions import Permission
from .service import CallResult, MeteredRegistry

__all__ = [
    "__version__",
    "CallResult",
    "ErrorKind",
    "MeteredRegistry",
    "Operation",
    "Permission",
    "RegistryEvent",
    "cost",
]
