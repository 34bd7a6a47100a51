"""Personal finance chat bot backed by a spreadsheet-style record store."""

__version__ = "0.1.0"
