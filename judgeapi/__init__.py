"""Accounts, tokens, problems, request logs and Werkzeug handlers for a judge backend on MongoDB."""

__version__ = "0.1.0"