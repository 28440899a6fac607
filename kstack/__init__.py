"""kstack — content-addressed markdown archive of platform articles."""

__version__ = "0.1.0"
