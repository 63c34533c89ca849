__path__ = __import__("pkgutil").extend_path(__path__, __name__)  # NOQA: F-821
__title__ = 'tiller'
__license__ = 'MIT'
__version__ = "0.1.0"

import logging

from .kinds import *
from .flags import *
from .arguments import *
from .commands import *
from .prompts import *
from .config import *
from .help import *
from .app import *
from .extensions import *
from .faults import *

VersionInfo = __import__("collections").namedtuple("VersionInfo", (
    "major",
    "minor",
    "micro",
    "releaselevel",
    "serial",
    "metadata"
))

version_info = VersionInfo(0, 1, 0, "final", 0, "")

# Library logging stays silent unless the host application configures it.
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = (
    "__path__",
    "__title__",
    "__license__",
    "__version__",
    "version_info"
)

# Load the exposed API of the kinds
__all__ += kinds.__all__  # type: ignore[attr-defined]
# Load the exposed API of the flags
__all__ += flags.__all__  # type: ignore[attr-defined]
# Load the exposed API of the arguments
__all__ += arguments.__all__  # type: ignore[attr-defined]
# Load the exposed API of the commands
__all__ += commands.__all__  # type: ignore[attr-defined]
# Load the exposed API of the prompts
__all__ += prompts.__all__  # type: ignore[attr-defined]
# Load the exposed API of the config
__all__ += config.__all__  # type: ignore[attr-defined]
# Load the exposed API of the help
__all__ += help.__all__  # type: ignore[attr-defined]
# Load the exposed API of the app
__all__ += app.__all__  # type: ignore[attr-defined]
# Load the exposed API of the extensions
__all__ += extensions.__all__  # type: ignore[attr-defined]
# Load the exposed API of the faults
__all__ += faults.__all__  # type: ignore[attr-defined]
