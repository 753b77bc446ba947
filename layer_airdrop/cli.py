#!/usr/bin/env python3
"""Command line entry point for the Layer Airdrop runner"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import Sequence

from colorama import Fore, Style

from layer_airdrop import __version__
from layer_airdrop.context import RunContext
from layer_airdrop.errors import KeySourceError
from layer_airdrop.log import DEFAULT_LOG_FILE, configure_logging
from layer_airdrop.orchestrator import SessionOrchestrator
from layer_airdrop.proxy import ProxyPool, fetch_public_proxies, load_proxies_from_file
from layer_airdrop.sources import load_config, read_chat_prompts, read_private_keys
from layer_airdrop.types import BatchSummary, ProxyDescriptor

logger = logging.getLogger("layer_airdrop.cli")

RULE = "━" * 68

PROXY_MODES = {
    "1": "public",
    "2": "private",
    "3": "none",
}


def print_banner() -> None:
    print(f"{Fore.CYAN}{RULE}")
    print(f"  LAYER AIRDROP AUTO CHAT  v{__version__}")
    print("  nation.fun agent sessions for multiple wallets")
    print(f"{RULE}{Style.RESET_ALL}")


def ask_proxy_mode() -> str:
    """Interactive menu; falls back to ``none`` when stdin is not a TTY."""
    if not sys.stdin.isatty():
        return "none"
    print("Select proxy mode:")
    print("  1. Run With Public Proxy List")
    print("  2. Run With Private Proxy (proxy file)")
    print("  3. Run Without Proxy")
    while True:
        choice = input("Choice [1-3]: ").strip()
        if choice in PROXY_MODES:
            return PROXY_MODES[choice]
        if choice in PROXY_MODES.values():
            return choice
        print("Please enter 1, 2 or 3.")


async def load_proxies(ctx: RunContext, mode: str, proxy_file: str) -> list[ProxyDescriptor]:
    if mode == "public":
        logger.info("Fetching public proxies...")
        proxies = await fetch_public_proxies(ctx)
        logger.info("Fetched %d public proxies", len(proxies))
    elif mode == "private":
        proxies = load_proxies_from_file(proxy_file)
        logger.info("Loaded %d proxies from %s", len(proxies), proxy_file)
    else:
        return []
    if not proxies:
        logger.warning("No working proxies found. Running without proxies.")
    return proxies


def print_summary(summary: BatchSummary) -> None:
    print(f"{Fore.CYAN}{RULE}{Style.RESET_ALL}")
    print(f"Wallets processed: {summary.total}")
    print(f"{Fore.GREEN}Success: {summary.success_count}{Style.RESET_ALL}")
    if summary.fail_count:
        print(f"{Fore.YELLOW}Failed: {summary.fail_count}{Style.RESET_ALL}")
    if summary.stopped:
        print(f"{Fore.YELLOW}Stopped before the end of the key list{Style.RESET_ALL}")
    print(f"{Fore.CYAN}{RULE}{Style.RESET_ALL}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="layer-airdrop",
        description="Sign in, check credits and chat with the Layer Airdrop agent for each wallet",
    )
    parser.add_argument("--keys", default="priv.txt", help="private keys file (default: priv.txt)")
    parser.add_argument("--prompts", default="questions.txt", help="chat prompts file (default: questions.txt)")
    parser.add_argument("--proxies", default="proxy.txt", help="proxy list file (default: proxy.txt)")
    parser.add_argument(
        "--proxy-mode",
        choices=["public", "private", "none"],
        help="proxy source; asked interactively when omitted",
    )
    parser.add_argument("--config", default="config.json", help="JSON config file (default: config.json)")
    parser.add_argument("--log-file", default=DEFAULT_LOG_FILE, help="JSON log file; empty to disable")
    parser.add_argument("--no-color", action="store_true", help="disable colored console output")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


async def run(args: argparse.Namespace) -> int:
    try:
        keys = read_private_keys(args.keys)
    except KeySourceError as e:
        logger.error("%s", e)
        print(f"{Fore.RED}Create '{args.keys}' with your private keys (one per line).{Style.RESET_ALL}")
        return 1
    logger.info("Loaded %d private keys", len(keys))

    try:
        config = load_config(args.config)
    except ValueError as e:
        logger.error("Invalid config file %s: %s", args.config, e)
        return 2
    ctx = RunContext(config)
    prompts = read_chat_prompts(args.prompts, ctx.config.chat_prompts)
    logger.info("Loaded %d chat prompts", len(prompts))

    mode = args.proxy_mode or ask_proxy_mode()
    proxies = await load_proxies(ctx, mode, args.proxies)
    pool = ProxyPool(ctx, proxies) if proxies else None

    orchestrator = SessionOrchestrator(ctx, prompts, proxy_pool=pool)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.stop)
        except (NotImplementedError, RuntimeError):
            pass  # Windows event loops do not support signal handlers

    summary = await orchestrator.run(keys)
    print_summary(summary)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_file=args.log_file or None,
        use_color=not args.no_color,
    )
    print_banner()
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
