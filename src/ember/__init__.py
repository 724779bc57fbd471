"""Ember: conversational memory capture and wake prompt assembly."""

__version__ = "0.1.0"
