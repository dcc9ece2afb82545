"""Presentation styles shared by the interactive UI and the CLI.

Initialised once at import time and never mutated afterwards.
"""

from __future__ import annotations

from types import MappingProxyType

from rich import box
from rich.style import Style

__all__ = ["APP_CSS", "BORDER_COLOR", "REPORT_BOX", "STYLES"]

GOLD = "#F1C069"
BORDER_COLOR = GOLD

PALETTE = MappingProxyType(
    {
        "gold": GOLD,
        "cream": "#F8E3BD",
        "green": "#7DCE82",
        "red": "#FF6B6B",
        "orange": "#FFB86C",
        "cyan": "#8BE9FD",
        "ink": "#1F1F1F",
    }
)

STYLES = MappingProxyType(
    {
        "title": Style(bold=True, color=GOLD, bgcolor=PALETTE["ink"]),
        "subtitle": Style(color=PALETTE["cream"]),
        "status": Style(bold=True, color=PALETTE["green"]),
        "error": Style(bold=True, color=PALETTE["red"]),
        "warning": Style(bold=True, color=PALETTE["orange"]),
        "info": Style(color=PALETTE["cyan"]),
        "selected": Style(bold=True, color=GOLD),
        "description": Style(dim=True),
    }
)

REPORT_BOX = box.DOUBLE

_RULES = """
Screen {
    align: center middle;
}
.panel {
    width: auto;
    max-width: 100;
    height: auto;
    max-height: 90%;
    border: round $gold;
    padding: 1 2;
}
.title {
    color: $gold;
    background: $ink;
    text-style: bold;
    margin-bottom: 1;
}
.subtitle {
    color: $cream;
    margin-bottom: 1;
}
.hint {
    color: $cyan;
    margin-top: 1;
}
.warning {
    color: $orange;
    text-style: bold;
}
.error {
    color: $red;
    text-style: bold;
}
#menu {
    width: 64;
    height: auto;
    background: transparent;
}
#menu > ListItem {
    padding: 0 1 1 1;
    background: transparent;
}
#menu > ListItem.-highlight {
    color: $gold;
    text-style: bold;
    border-left: outer $gold;
}
Input {
    width: 60;
}
LoadingIndicator {
    height: 1;
    color: $gold;
}
.transcript {
    height: auto;
    max-height: 30;
}
"""

# Textual stylesheet; palette entries become $variables
APP_CSS = "".join(f"${name}: {value};\n" for name, value in PALETTE.items()) + _RULES
