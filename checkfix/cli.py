"""
Command Line
============
Entry points for the two console scripts:

    checkfix — iteratively check and fix code until stable
    zap      — run a single prompt against code context

Exit codes: 0 success, 1 failure, 130 interrupted (SIGINT / SIGTERM).
"""
import sys
import signal
import logging
import argparse
from typing import List, Optional

from checkfix.agents.controller import ConvergenceController
from checkfix.agents.oneshot import run_oneshot
from checkfix.core import config
from checkfix.core.constants import (
    EXIT_OK,
    EXIT_FAILURE,
    EXIT_INTERRUPTED,
    ZAP_TIMEOUT_SECONDS,
    ZAP_RETRY_DELAY_SECONDS,
)
from checkfix.core.errors import CheckfixError, ConfigError
from checkfix.executor.command_resolver import ensure_available, get_supported_clis, select_agent
from checkfix.executor.process_supervisor import ProcessSupervisor
from checkfix.llm.prompts import PRESETS, preset_prompt
from checkfix.services.config_loader import load_session_config
from checkfix.services.targets import DiffTarget, FileTarget, build_target
from checkfix.utils.logging_config import setup_logging

logger = logging.getLogger("checkfix.cli")


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        number = 0
    if number < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return number


def _print_progress(phase: str, status: str, elapsed: int) -> None:
    """Single self-overwriting status line on an interactive stderr."""
    if not sys.stderr.isatty():
        return
    if status == "finished":
        sys.stderr.write("\r\033[K")
    else:
        sys.stderr.write(f"\r\033[K{phase}: {status} [{elapsed}s]")
    sys.stderr.flush()


def _install_signal_handlers() -> None:
    # SIGTERM takes the same path as Ctrl-C: KeyboardInterrupt unwinds
    # through every finally block (child killed, lock released).
    signal.signal(signal.SIGTERM, signal.default_int_handler)


# ---------------------------------------------------------------------------
# checkfix
# ---------------------------------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    clis = " ".join(get_supported_clis())
    parser = argparse.ArgumentParser(
        prog="checkfix",
        description="Iteratively check and fix code until stable.",
        epilog=(
            "Modes: git diff against main/master (default), specific files (--files), "
            "or the whole repository (--repo)."
        ),
    )
    parser.add_argument("-l", "--cli", help=f"CLI to use (available: {clis})")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("-f", "--files", nargs="+", metavar="FILE",
                      help="check specific files instead of the git diff")
    mode.add_argument("-R", "--repo", action="store_true",
                      help="run repo-wide (CLI explores on its own)")
    parser.add_argument("-m", "--max-iterations", type=_positive_int)
    parser.add_argument("-c", "--consecutive", type=_positive_int,
                        help="consecutive passes needed")
    parser.add_argument("-r", "--retries", type=_positive_int, help="attempts per call")
    parser.add_argument("-t", "--timeout", type=_positive_int, help="timeout per call, seconds")
    parser.add_argument("-s", "--stall-threshold", type=_positive_int,
                        help="seconds without output before a call counts as stalled")
    parser.add_argument("--max-change-lines", type=_positive_int,
                        help="largest change a single fix may make")
    parser.add_argument("--config", help="YAML config file (default: .checkfix.yml in the target root)")
    parser.add_argument("--results-json", help="also write the final result as JSON here")
    parser.add_argument("--dry-run", action="store_true", help="run without calling the CLI")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    _install_signal_handlers()

    try:
        target = build_target(files=args.files, repo=args.repo)
        session_config, agent_values = load_session_config(
            target.root,
            config_path=args.config,
            overrides={
                "max_iterations": args.max_iterations,
                "consecutive_passes": args.consecutive,
                "retries": args.retries,
                "timeout_seconds": args.timeout,
                "stall_threshold_seconds": args.stall_threshold,
                "max_change_lines": args.max_change_lines,
                "dry_run": args.dry_run or None,
            },
        )
        agent = select_agent(
            args.cli, agent_values, config.CHECKFIX_CLI, config.CHECKFIX_CLI_CMD
        )
        if not session_config.dry_run:
            ensure_available(agent)

        supervisor = ProcessSupervisor(
            agent.command,
            timeout_seconds=session_config.timeout_seconds,
            stall_threshold_seconds=session_config.stall_threshold_seconds,
            retries=session_config.retries,
            cwd=target.root,
            dry_run=session_config.dry_run,
            on_progress=_print_progress,
            label=agent.name,
        )
        logger.info("cli=%s", agent.name)
        controller = ConvergenceController(
            target, supervisor, session_config, results_path=args.results_json
        )
        result = controller.run()
    except CheckfixError as exc:
        logger.error("checkfix: %s", exc.reason)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.warning("checkfix: interrupted")
        return EXIT_INTERRUPTED

    return result.exit_code


# ---------------------------------------------------------------------------
# zap
# ---------------------------------------------------------------------------
def build_zap_parser() -> argparse.ArgumentParser:
    clis = " ".join(get_supported_clis())
    parser = argparse.ArgumentParser(
        prog="zap",
        description="Run a single prompt against code context (branch diff or files).",
        epilog=f"Presets: {' '.join(PRESETS)}",
    )
    parser.add_argument("preset", nargs="?", help="preset prompt name")
    parser.add_argument("-l", "--cli", help=f"CLI to use (available: {clis})")
    parser.add_argument("-f", "--files", nargs="+", metavar="FILE",
                        help="target specific files instead of git diff")
    parser.add_argument("-p", "--prompt", help="custom prompt (use - for stdin)")
    parser.add_argument("-t", "--timeout", type=_positive_int, default=ZAP_TIMEOUT_SECONDS)
    parser.add_argument("-r", "--retries", type=_positive_int, default=config.RETRIES)
    parser.add_argument("--raw", action="store_true",
                        help="output raw response without status messages")
    parser.add_argument("--list", action="store_true", help="list available presets")
    return parser


def _resolve_zap_prompt(args) -> str:
    if args.preset and args.prompt:
        raise ConfigError("cannot use both preset and --prompt")
    if args.preset:
        try:
            return preset_prompt(args.preset)
        except KeyError:
            raise ConfigError(f"unknown preset: {args.preset} (use --list to see available)")
    if args.prompt == "-":
        return sys.stdin.read()
    if args.prompt:
        return args.prompt
    raise ConfigError("missing preset or --prompt (use --help for usage)")


def zap_main(argv: Optional[List[str]] = None) -> int:
    args = build_zap_parser().parse_args(argv)

    if args.list:
        print("Available presets:")
        for name, text in PRESETS.items():
            print(f"  {name:<12} {text[:60]}...")
        return EXIT_OK

    setup_logging(logging.WARNING if args.raw else logging.INFO)
    _install_signal_handlers()

    try:
        prompt = _resolve_zap_prompt(args)
        agent = select_agent(args.cli, env_cli=config.ZAP_CLI, env_command=config.ZAP_CLI_CMD)
        ensure_available(agent)
        target = FileTarget(args.files) if args.files else DiffTarget()
        logger.info("zap: %s", target.summary())

        supervisor = ProcessSupervisor(
            agent.command,
            timeout_seconds=args.timeout,
            stall_threshold_seconds=config.STALL_THRESHOLD_SECONDS,
            retries=args.retries,
            retry_delay=ZAP_RETRY_DELAY_SECONDS,
            cwd=target.root,
            on_progress=None if args.raw else _print_progress,
            label=agent.name,
        )
        result = run_oneshot(target, prompt, supervisor)
    except CheckfixError as exc:
        logger.error("zap: %s", exc.reason)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.warning("zap: interrupted")
        return EXIT_INTERRUPTED

    if not result.succeeded:
        if result.outcome == "blocked":
            logger.error("zap: CLI blocked on permission prompt")
        logger.error("zap: failed [%ds]", result.elapsed_seconds)
        return EXIT_FAILURE

    logger.info("zap: completed [%ds]", result.elapsed_seconds)
    sys.stdout.write(result.output)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
