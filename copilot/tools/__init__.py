"""
Tool sets offered to the model.

``build_diagnostic_registry`` provides the simulated Windows tools used by the
terminal copilot; ``build_server_registry`` provides the web, memory and
database tools used by the HTTP server.
"""

from copilot.tools.diagnostics import build_diagnostic_registry
from copilot.tools.memory import build_server_registry

__all__ = ['build_diagnostic_registry', 'build_server_registry']
