"""DareDevil: peer-to-peer straight bet client with a points economy."""

__version__ = "0.1.0"
__author__ = "DareDevil Team"

__all__ = ["__version__", "__author__"]
