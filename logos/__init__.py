"""Collect reading material from e-mail and deliver it as ebook editions."""

__version__ = "0.1.0"