"""PolicyFlow - policy generation and case validation service."""

__version__ = "0.1.0"
