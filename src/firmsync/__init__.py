"""FirmSync tenant boundary: request isolation and per-firm database routing."""

__version__ = "0.1.0"
