"""Process-wide Rich console used as the operational console."""

from rich.console import Console

console = Console()
