"""Conditional release pipeline for Salesforce metadata."""

__version__ = "0.1.0"
