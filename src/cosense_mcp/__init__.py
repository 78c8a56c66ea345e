"""cosense-mcp: query and search tools for a Cosense project."""

__version__ = "0.1.0"
