"""Add-on stack management and legacy backend migration."""

__version__ = "0.5.3"
