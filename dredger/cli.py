"""CLI entrypoints for dredger commands."""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from pathlib import Path

from .config import DredgerConfig, load_config
from .errors import ConfigError
from .git.publisher import Publisher
from .logging import configure_logging, get_logger
from .pipeline import Pipeline, PipelineOutcome, summarize
from .repo_scanner import RepoScanner, token_tree
from .tokens import load_registry

logger = get_logger("cli")


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    kwargs["default"] = argparse.SUPPRESS if suppress_default else False
    parser.add_argument("-v", "--verbose", **kwargs)


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dredger",
        description="Generate documentation comments for a repository with a local language model.",
    )
    _add_verbose_option(parser)
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Generate documentation and write or publish it.")
    _add_verbose_option(run_parser, suppress_default=True)
    _add_path_argument(run_parser)
    run_parser.add_argument("--budget", type=int, help="Token budget per chunk.")
    run_parser.add_argument("--concurrency", type=int, help="Maximum in-flight inference requests.")
    run_parser.add_argument("--model", help="Model name sent to the completion endpoint.")
    run_parser.add_argument("--profile", help="Tokenizer profile used for counting (defaults to the model).")
    mode = run_parser.add_mutually_exclusive_group()
    mode.add_argument("--dry-run", action="store_true", help="Print diffs without writing files.")
    mode.add_argument("--publish", action="store_true", help="Commit on a new branch and open a pull request.")
    run_parser.add_argument("--report", type=Path, help="Write the run report as JSON to this file.")

    tokens_parser = subparsers.add_parser("tokens", help="Show token counts per file and directory.")
    _add_verbose_option(tokens_parser, suppress_default=True)
    _add_path_argument(tokens_parser)
    tokens_parser.add_argument("--model", help="Tokenizer profile to count with (defaults to the configured model).")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service.")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def _apply_overrides(config: DredgerConfig, args: argparse.Namespace) -> DredgerConfig:
    if args.budget is not None:
        config.chunking.budget = args.budget
    if args.concurrency is not None:
        config.dispatch.concurrency = args.concurrency
    if args.model:
        config.inference.model = args.model
    if args.profile:
        config.chunking.model_profile = args.profile
    return config


def _run(args: argparse.Namespace) -> int:
    repo = Path(args.path).expanduser().resolve()
    config = _apply_overrides(load_config(repo), args)
    logger.debug(
        "Model %s, budget %s, concurrency %s",
        config.model,
        config.chunking.budget,
        config.dispatch.concurrency,
    )
    pipeline = Pipeline(config)

    cancel = threading.Event()
    previous = signal.signal(signal.SIGINT, lambda *_: cancel.set())
    try:
        outcome = pipeline.run_repository(repo, cancel_event=cancel)
    finally:
        signal.signal(signal.SIGINT, previous)

    if args.report is not None:
        args.report.write_text(json.dumps(outcome.report.to_dict(), indent=2), encoding="utf-8")

    _deliver(repo, config, outcome, dry_run=args.dry_run, publish=args.publish)
    print(summarize(outcome) or "No documentable units found")
    return 0 if outcome.report.ok else 1


def _deliver(
    repo: Path,
    config: DredgerConfig,
    outcome: PipelineOutcome,
    *,
    dry_run: bool,
    publish: bool,
) -> None:
    if dry_run:
        for entry in outcome.patches:
            print(entry.diff(), end="")
        return
    publisher = Publisher()
    if publish:
        published = publisher.publish(
            repo,
            outcome.patches,
            outcome.report,
            branch_prefix=config.publish.branch_prefix,
            base_branch=config.publish.base_branch,
            labels=config.publish.labels,
            update_existing=config.publish.update_existing,
        )
        print("Pull request opened" if published else "Nothing was published")
        return
    publisher.apply(repo, outcome.patches)


def _tokens(args: argparse.Namespace) -> int:
    repo = Path(args.path).expanduser().resolve()
    config = load_config(repo)
    registry = load_registry(config.tokenizers)
    profile = registry.get(args.model or config.profile_name)
    files = RepoScanner().load(repo)
    print(token_tree(files, profile, root_name=repo.name or ".").render())
    return 0


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for dredger commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    try:
        if args.command == "run":
            status = _run(args)
        elif args.command == "tokens":
            status = _tokens(args)
        elif args.command == "serve":  # pragma: no cover - integration path
            from .service import run_service

            run_service(host=args.host, port=args.port)
            status = 0
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except ConfigError as exc:
        parser.exit(1, f"dredger: configuration error: {exc}\n")
    except (FileNotFoundError, NotADirectoryError) as exc:
        parser.exit(1, f"{exc}\n")
    except RuntimeError as exc:
        parser.exit(1, f"dredger {args.command} failed: {exc}\nRun with --verbose for more details.\n")
    sys.exit(status)


if __name__ == "__main__":
    main(sys.argv[1:])
