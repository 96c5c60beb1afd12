import os
import sys
import threading
import time
from typing import Optional, TextIO


def enable_ansi_colors(stream: TextIO) -> bool:
    if not stream.isatty():
        return False
    if os.name != "nt":
        return True
    try:
        import ctypes

        kernel32 = ctypes.windll.kernel32
        handle = kernel32.GetStdHandle(-11)
        mode = ctypes.c_uint()
        if kernel32.GetConsoleMode(handle, ctypes.byref(mode)) == 0:
            return False
        if kernel32.SetConsoleMode(handle, mode.value | 0x0004) == 0:
            return False
        return True
    except (AttributeError, OSError):
        return False


class TerminalUI:
    RESET = "\033[0m"
    CYAN = "\033[96m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    DIM = "\033[2m"

    def __init__(self, pretty: bool = True, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout
        self.pretty = pretty
        self.use_color = pretty and enable_ansi_colors(self.stream)
        self.lock = threading.Lock()

    def _color(self, text: str, color: str) -> str:
        if not self.use_color:
            return text
        return f"{color}{text}{self.RESET}"

    def _line(self, tag: str, msg: str) -> None:
        clock = self._color(time.strftime("%H:%M:%S"), self.DIM)
        # Worker threads report completions concurrently.
        with self.lock:
            print(f"{clock} {tag} {msg}", file=self.stream, flush=True)

    def info(self, msg: str) -> None:
        self._line(self._color("[INFO]", self.CYAN), msg)

    def ok(self, msg: str) -> None:
        self._line(self._color("[ OK ]", self.GREEN), msg)

    def warn(self, msg: str) -> None:
        self._line(self._color("[WARN]", self.YELLOW), msg)

    def error(self, msg: str) -> None:
        self._line(self._color("[FAIL]", self.RED), msg)

    def complete_task(self, label: str, ok: bool, message: str) -> None:
        if ok:
            self.ok(f"{label} {message}")
        else:
            self.error(f"{label} {message}")
