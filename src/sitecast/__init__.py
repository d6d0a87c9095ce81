"""Sitecast - web page screenshots, screencasts and console capture over MCP."""

__version__ = "0.1.0"
