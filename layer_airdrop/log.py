"""
Logging setup.

Modules log through ``logging.getLogger(__name__)``. Wallet-scoped messages go
through :class:`WalletLogger`, which attaches the wallet address and proxy to
each record so the console formatter can tag the line with them.
"""

from __future__ import annotations

import json
import logging
from typing import Any, MutableMapping

from colorama import Fore, Style
from colorama import init as colorama_init

from layer_airdrop.types import ProxyDescriptor

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

DEFAULT_LOG_FILE = "layer-airdrop.log"

_LEVEL_COLORS = {
    logging.DEBUG: Fore.BLUE,
    logging.INFO: Fore.CYAN,
    SUCCESS: Fore.GREEN,
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED + Style.BRIGHT,
}


def format_wallet_address(address: str | None) -> str | None:
    """``0x1234...abcd`` form for display."""
    if not address or len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


class WalletLogger(logging.LoggerAdapter):
    """Logger adapter carrying wallet and proxy context."""

    def __init__(self, logger: logging.Logger, wallet: str | None, proxy: ProxyDescriptor | None = None) -> None:
        super().__init__(logger, {"wallet": wallet, "proxy": proxy.display if proxy else None})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs

    def success(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.log(SUCCESS, msg, *args, **kwargs)


class ConsoleFormatter(logging.Formatter):
    """``[time] [0x1234...abcd] [Proxy: ...] message`` with level colors."""

    def __init__(self, use_color: bool = True) -> None:
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.use_color = use_color

    def _paint(self, color: str, text: str) -> str:
        return f"{color}{text}{Style.RESET_ALL}" if self.use_color else text

    def format(self, record: logging.LogRecord) -> str:
        parts = [self._paint(Fore.LIGHTBLACK_EX, f"[{self.formatTime(record, self.datefmt)}]")]
        wallet = getattr(record, "wallet", None)
        if wallet:
            parts.append(self._paint(Fore.YELLOW, f"[{format_wallet_address(wallet)}]"))
        proxy = getattr(record, "proxy", None)
        if proxy:
            parts.append(self._paint(Fore.MAGENTA, f"[Proxy: {proxy}]"))
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        parts.append(self._paint(_LEVEL_COLORS.get(record.levelno, ""), message))
        return " ".join(parts)


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line, uncolored."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("wallet", "proxy"):
            value = getattr(record, key, None)
            if value:
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging(
    level: int = logging.INFO,
    log_file: str | None = DEFAULT_LOG_FILE,
    use_color: bool = True,
) -> logging.Logger:
    """Install console (and optional JSON file) handlers on the package logger."""
    if use_color:
        colorama_init()

    root = logging.getLogger("layer_airdrop")
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setFormatter(ConsoleFormatter(use_color=use_color))
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(JsonLineFormatter())
        root.addHandler(file_handler)

    root.propagate = False
    return root
