from .contracts import *  # noqa: F401,F403
from .contracts import __all__  # noqa: F401
