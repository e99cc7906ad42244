"""Watch-mode Qooxdoo compiler builds with diagnostics, served over MCP."""

__version__ = "0.1.0"
