"""Command-line interface for the AEGIS engine."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from .config import AppConfig, load_config
from .errors import RequestValidationError
from .logging_setup import configure_logging
from .orchestration import parse_request
from .services.container import Services, build_services

logger = logging.getLogger(__name__)

_REGISTRY_COMMANDS = ("pending", "approve", "reject")


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="aegis",
        description="Risk-gated orchestration engine for wallet actions",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    monitor_parser = sub.add_parser("monitor", help="Continuous monitoring loop")
    monitor_parser.add_argument(
        "wallets",
        nargs="*",
        help="Wallets to watch (default: monitor.wallets from config)",
    )

    run_parser = sub.add_parser("run", help="Run one request through the pipeline")
    run_parser.add_argument("wallet", help="Wallet the request acts on")
    run_parser.add_argument(
        "request",
        help='Request JSON, e.g. \'{"type": "analyze_token", "payload": {"mint": "..."}}\'',
    )

    sub.add_parser("pending", help="List actions awaiting approval")

    approve_parser = sub.add_parser("approve", help="Approve a pending action")
    approve_parser.add_argument("action_id")

    reject_parser = sub.add_parser("reject", help="Reject a pending action")
    reject_parser.add_argument("action_id")

    sub.add_parser("serve", help="HTTP API with the monitoring loop attached")

    return parser


async def _monitor(services: Services, wallets: list[str]) -> None:
    if not wallets:
        logger.error("No wallets to monitor; pass them or set monitor.wallets")
        sys.exit(1)
    for wallet_id in wallets:
        await services.monitor.start(wallet_id)
    # Runs until the process is interrupted.
    await asyncio.Event().wait()


async def _serve(services: Services, config: AppConfig) -> None:
    import uvicorn

    from .web import create_app

    app = create_app(
        services.gate,
        services.activity,
        monitor=services.monitor,
        wallets=config.monitor.wallets,
    )
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=config.server.host,
            port=config.server.port,
            log_level="warning",
        )
    )
    logger.info("Serving on http://%s:%d", config.server.host, config.server.port)
    await server.serve()


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)

    if args.command == "run":
        try:
            request = parse_request(json.loads(args.request))
        except (json.JSONDecodeError, RequestValidationError) as e:
            print(f"Invalid request: {e}", file=sys.stderr)
            sys.exit(2)

    if args.command in _REGISTRY_COMMANDS and config.registry.backend != "redis":
        print(
            f"'{args.command}' needs the shared registry; set registry.backend: redis "
            "(the in-memory registry only lives inside the serving process)",
            file=sys.stderr,
        )
        sys.exit(2)

    services = await build_services(config)
    try:
        if args.command == "monitor":
            await _monitor(services, args.wallets or list(config.monitor.wallets))
        elif args.command == "run":
            state = await services.pipeline.run(request, args.wallet)
            print(state.final_response)
        elif args.command == "pending":
            actions = await services.gate.list_pending()
            if not actions:
                print("No pending actions.")
            for action in actions:
                print(
                    f"{action.id}  {action.type}  ${action.estimated_value:,.2f}  "
                    f"{action.description}"
                )
        elif args.command in ("approve", "reject"):
            if args.command == "approve":
                resolved = await services.gate.approve(args.action_id)
            else:
                resolved = await services.gate.reject(args.action_id)
            if resolved is None:
                print(f"Action {args.action_id} not found", file=sys.stderr)
                sys.exit(1)
            print(f"Action {resolved.id} {resolved.status}")
        elif args.command == "serve":
            await _serve(services, config)
        else:
            build_parser().print_help()
            sys.exit(1)
    finally:
        await services.close()


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        asyncio.run(_run(args))
    except KeyboardInterrupt:
        pass
