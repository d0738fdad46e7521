from __future__ import annotations

import argparse
import json
from datetime import date as date_type
from pathlib import Path

from streakbot import __version__
from streakbot.activity.classifier import ActivityClassifier
from streakbot.activity.github_client import GitHubClient
from streakbot.activity.strategies import build_strategies
from streakbot.config import AppConfig, default_config_path, load_config
from streakbot.diagnostics import diagnostics_payload
from streakbot.errors import PublishError
from streakbot.logging_setup import configure_logging, get_logger
from streakbot.publishing.git_publisher import GitPublisher
from streakbot.state.decision_engine import StreakDecisionEngine, today_in
from streakbot.state.models import RunOutcome
from streakbot.state.store import StreakStateStore


def _iso_date(value: str) -> str:
    try:
        return date_type.fromisoformat(value).isoformat()
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from exc


def _resolve_config_path(config_path: str | None) -> Path:
    if config_path:
        return Path(config_path)
    return default_config_path()


def _try_load_config(config_path: str | None) -> tuple[AppConfig | None, str | None]:
    try:
        return load_config(config_path), None
    except Exception as exc:
        return None, f"{exc.__class__.__name__}: {exc}"


def _path_state(path: Path) -> str:
    return "exists" if path.exists() else "missing"


def _build_engine(config: AppConfig, client: GitHubClient) -> StreakDecisionEngine:
    classifier = ActivityClassifier(strategies=build_strategies(config, client))
    publisher = (
        GitPublisher(config.publish, repo_directory=config.repo_directory)
        if config.publish.enabled
        else None
    )
    return StreakDecisionEngine(
        config=config,
        store=StreakStateStore(config.state),
        classifier=classifier,
        publisher=publisher,
    )


def _print_outcome(outcome: RunOutcome) -> None:
    print("")
    print("Streakbot Run")
    print("=============")
    print(f"Date:     {outcome.date}")
    print(f"Action:   {outcome.action}{' (dry run)' if outcome.dry_run else ''}")
    print(f"Counter:  {outcome.counter_before} -> {outcome.counter_after}")
    if outcome.commit_message:
        print(f"Commit:   {outcome.commit_message}")
        print(f"Pushed:   {'yes' if outcome.published else 'no'}")
    if outcome.evidence is not None:
        source = outcome.evidence.strategy or "-"
        print(f"Verdict:  {'manual' if outcome.evidence.has_manual_activity else 'none'} ({source})")
    print("")


def _cmd_run(args: argparse.Namespace) -> int:
    config = load_config(getattr(args, "config_path", None))
    configure_logging(config.logging)
    logger = get_logger(__name__)

    with GitHubClient(config.github) as client:
        engine = _build_engine(config, client)
        try:
            outcome = engine.run(
                date=getattr(args, "date", None),
                dry_run=bool(getattr(args, "dry_run", False)),
            )
        except PublishError as exc:
            logger.error("Publishing failed: %s", exc)
            return 1
        except OSError as exc:
            logger.error("Writing state failed: %s", exc)
            return 1

    _print_outcome(outcome)
    return 0


def _cmd_check(args: argparse.Namespace) -> int:
    config = load_config(getattr(args, "config_path", None))
    configure_logging(config.logging)
    user = getattr(args, "user", None) or config.github.target_user
    day = getattr(args, "date", None) or today_in(config.runtime.timezone)

    with GitHubClient(config.github) as client:
        classifier = ActivityClassifier(strategies=build_strategies(config, client))
        evidence = classifier.classify(user, day)

    print("")
    print("Streakbot Check")
    print("===============")
    print(f"User:      {user}")
    print(f"Date:      {day}")
    print(f"Verdict:   {'manual activity' if evidence.has_manual_activity else 'no manual activity'}")
    print(f"Strategy:  {evidence.strategy or '-'}{' (fail-safe)' if evidence.fail_safe else ''}")
    print(f"Commits:   {len(evidence.source_commits)}")
    for commit in evidence.source_commits:
        kind = "auto" if commit.automated else "manual"
        print(f"  [{kind}] {commit.timestamp} {commit.repository}: {commit.headline}")
    for note in evidence.notes:
        print(f"  note: {note}")
    print("")
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    cfg_path = _resolve_config_path(getattr(args, "config_path", None))
    config, error = _try_load_config(getattr(args, "config_path", None))
    if config is None:
        config = AppConfig()
    store = StreakStateStore(config.state)
    state = store.load()

    print("")
    print("Streakbot Status")
    print("================")
    print(f"Target user:   {config.github.target_user}")
    print(f"Counter:       {state.counter}")
    print(f"Last run:      {state.last_run_date or 'never'}")
    print(f"Config YAML:   {cfg_path} ({_path_state(cfg_path)})")
    print(f"Counter file:  {store.counter_path} ({_path_state(store.counter_path)})")
    print(f"Audit log:     {store.log_path} ({_path_state(store.log_path)})")
    print(f"Last-run file: {store.last_run_path} ({_path_state(store.last_run_path)})")
    if error:
        print("")
        print(f"Config load note: {error}")
    print("")
    return 0


def _cmd_diagnostics(args: argparse.Namespace) -> int:
    config, error = _try_load_config(getattr(args, "config_path", None))
    if config is None:
        print(f"Config load note: {error}")
        return 1
    payload = diagnostics_payload(config, StreakStateStore(config.state))
    print(json.dumps(payload, indent=2))
    return 0


def _cmd_version() -> int:
    print(f"streakbot {__version__}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="streakbot")
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser(
        "run", help="Check today's activity and update the streak (default)"
    )
    run_parser.add_argument("--config", dest="config_path", default=None)
    run_parser.add_argument(
        "--date", type=_iso_date, default=None, help="Process this date instead of today"
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Classify and report without writing files or committing",
    )

    check_parser = subparsers.add_parser(
        "check", help="Only classify a user's activity for a date"
    )
    check_parser.add_argument("--config", dest="config_path", default=None)
    check_parser.add_argument("--user", default=None)
    check_parser.add_argument("--date", type=_iso_date, default=None)

    status_parser = subparsers.add_parser("status", help="Print counter, last run and paths")
    status_parser.add_argument("--config", dest="config_path", default=None)

    diagnostics_parser = subparsers.add_parser(
        "diagnostics", help="Print resolved configuration and readiness as JSON"
    )
    diagnostics_parser.add_argument("--config", dest="config_path", default=None)

    subparsers.add_parser("version", help="Print streakbot version")
    return parser


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()
    command = args.command or "run"

    if command == "version":
        raise SystemExit(_cmd_version())
    if command == "check":
        raise SystemExit(_cmd_check(args))
    if command == "status":
        raise SystemExit(_cmd_status(args))
    if command == "diagnostics":
        raise SystemExit(_cmd_diagnostics(args))
    raise SystemExit(_cmd_run(args))


if __name__ == "__main__":
    main()
