"""tmpmail - disposable inbox mail capture service"""

__version__ = "0.1.0"
