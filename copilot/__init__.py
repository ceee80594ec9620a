"""
IT support copilot.

This package provides a tool-calling chat loop for IT administrators, with
an interactive terminal front end and an HTTP server backed by per-user memory.
"""

from copilot.app import app, initialize_app

__all__ = ['app', 'initialize_app']
