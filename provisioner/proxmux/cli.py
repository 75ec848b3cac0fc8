from __future__ import annotations
import argparse
import json
import signal
import sys
from contextlib import contextmanager
from pathlib import Path
import uvicorn
from .settings import Settings
from .logging_setup import setup_logging
from .context import ProvisionContext
from .errors import ConflictError, PlanLoadError
from .orchestrator import Collaborators, Orchestrator
from .plan_loader import list_plans
from .api import create_app
from .report import render_text
from . import __version__

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ABORTED = 2
EXIT_USAGE = 3

class _Parser(argparse.ArgumentParser):
    # bad flags are an invalid invocation (3), not argparse's default 2
    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")

def _positive_float(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {raw!r}")
    if value <= 0:
        raise argparse.ArgumentTypeError("must be greater than zero")
    return value

def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(prog="proxmux")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--plans-dir", type=Path, help="Directory holding <plan>.json files (PROXMUX_PLANS_DIR)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    prov_p = sub.add_parser("provision", help="Validate, confirm and apply a named plan")
    prov_p.add_argument("plan", help="Plan name (file stem in the plans directory)")
    prov_p.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    prov_p.add_argument("--dry-run", action="store_true", help="Validate and print the plan; change nothing")
    prov_p.add_argument("--timeout", type=_positive_float, help="Seconds each external command may run")
    prov_p.add_argument("--json", action="store_true", help="Print the report as JSON")

    sub.add_parser("plans", help="List available plans")

    api_p = sub.add_parser("api", help="Run REST API (FastAPI)")
    api_p.add_argument("--host", default="127.0.0.1")
    api_p.add_argument("--port", type=int, default=8000)
    return parser

def _prompt_confirm(summary: str) -> bool:
    print(summary)
    try:
        reply = input("Continue? (y/N): ")
    except EOFError:
        return False
    return reply.strip().lower() in ("y", "yes")

@contextmanager
def _stop_on_signals(orch: Orchestrator):
    def handler(signum, frame):
        orch.request_stop()

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)

def _provision(args, settings: Settings) -> int:
    if args.timeout is not None:
        settings = settings.model_copy(update={"command_timeout": args.timeout})

    context = ProvisionContext.from_host(settings)
    orch = Orchestrator(settings, context, Collaborators.for_host(settings), confirm=_prompt_confirm)

    try:
        plan = orch.load(args.plan)
    except PlanLoadError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except ConflictError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ABORTED

    if args.dry_run:
        preview = orch.dry_run(plan)
        print(json.dumps(preview, indent=2, ensure_ascii=False))
        return EXIT_OK if preview["ok"] else EXIT_ABORTED

    with _stop_on_signals(orch):
        report = orch.run(plan, assume_yes=args.yes or None)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(render_text(report))
    return report.exit_code

def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = Settings()
    if args.plans_dir is not None:
        settings = settings.model_copy(update={"plans_dir": args.plans_dir})
    setup_logging(settings)

    if args.cmd == "provision":
        return _provision(args, settings)

    if args.cmd == "plans":
        for name in list_plans(settings.plans_dir):
            print(name)
        return EXIT_OK

    if args.cmd == "api":
        app = create_app(settings)
        uvicorn.run(app, host=args.host, port=args.port, log_level=settings.log_level.lower())
        return EXIT_OK

    return EXIT_USAGE

if __name__ == "__main__":
    sys.exit(main())
