"""solpack - Solaris SVR4 and IPS package builder."""

__version__ = "0.1.0"
