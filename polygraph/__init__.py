"""polygraph: multi-language code graph and static analysis."""

__version__ = "0.1.0"
