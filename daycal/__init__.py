"""Day-at-a-glance terminal calendar backed by the Google Calendar MCP server."""

__version__ = "0.1.0"
