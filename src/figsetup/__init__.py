"""figsetup - configure Figma Console MCP across AI coding clients."""

__version__ = "1.0.0"
