"""Domain entities.

These are pure-ish structures used by the core. Keep filesystem/network I/O in adapters.
"""

from .base import *
from .data_view import *
from .dataset import *
from .images import *
from .model import *
from .prediction import *
