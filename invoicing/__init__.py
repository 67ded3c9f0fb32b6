"""Invoicing core for myDATA e-invoice submissions."""

__version__ = "1.1.0"
