"""
Traffic Cop Output

Console rendering of capture reports.
"""

from trafficcop.output.console import CaptureConsole, get_console

__all__ = [
    "CaptureConsole",
    "get_console",
]
