"""embedmux package root."""

from embedmux.exceptions import CustomDataError, EmbedmuxError, NeverThrown
from embedmux.invariants import never

__all__ = ["__version__", "CustomDataError", "EmbedmuxError", "NeverThrown", "never"]

__version__ = "0.1.0"
