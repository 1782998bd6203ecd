"""Terminal presenter for local alerts."""

import sys
from datetime import datetime
from typing import Optional, TextIO

from webpage_monitor.core import AlertPresenter


class ConsoleAlertPresenter(AlertPresenter):
    """Print alerts to the terminal and ring the bell for sound."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream or sys.stdout

    def show_local_alert(self, title: str, body: str) -> None:
        timestamp = datetime.now().strftime("%H:%M:%S")
        print(f"\n🔔 [{timestamp}] {title}", file=self.stream)
        print(f"  └─ {body}", file=self.stream)
        self.stream.flush()

    def play_sound(self) -> None:
        self.stream.write("\a")
        self.stream.flush()
