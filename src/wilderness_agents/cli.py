# Copyright 2025 msq
from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError

from wilderness_agents.config import AppConfig, load_env_files
from wilderness_agents.fetchers import FetcherSettings
from wilderness_agents.geo import build_geolocation_provider
from wilderness_agents.llm.client import get_collaborator
from wilderness_agents.logging import configure_logging
from wilderness_agents.models import ThemeMode
from wilderness_agents.orchestrator import RefreshOrchestrator
from wilderness_agents.state import PresentationState

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Gather wilderness safety intelligence for a location and print it as JSON",
    )
    parser.add_argument("location", nargs="?", help="Area to assess (defaults to DEFAULT_LOCATION)")
    parser.add_argument("--fire", action="store_true", help="Enable fire mode (fire details and alerts)")
    parser.add_argument("--experience", type=float, help="Experience 0-100")
    parser.add_argument("--fitness", type=float, help="Fitness 0-100")
    parser.add_argument("--pack-weight", type=float, help="Pack weight in kg")
    parser.add_argument("--group-size", type=int, help="Number of people in the group")
    parser.add_argument("--start-time", help="Planned start time HH:MM")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON logs")
    return parser


def _profile_changes(args: argparse.Namespace) -> Dict[str, Any]:
    candidates = {
        "experience": args.experience,
        "fitness": args.fitness,
        "pack_weight": args.pack_weight,
        "group_size": args.group_size,
        "start_time": args.start_time,
    }
    return {key: value for key, value in candidates.items() if value is not None}


async def run(args: argparse.Namespace, cfg: AppConfig) -> Dict[str, Any]:
    state = PresentationState(
        location_input=args.location or cfg.default_location,
        theme=ThemeMode.FIRE if args.fire else ThemeMode(cfg.default_theme),
    )
    changes = _profile_changes(args)
    if changes:
        state.update_profile(**changes)

    geolocator = build_geolocation_provider(cfg)
    if geolocator is not None:
        try:
            state.set_coordinates(await geolocator.locate())
        except Exception as exc:  # noqa: BLE001
            logger.info("geolocation_opted_out", error=str(exc))
        finally:
            close = getattr(geolocator, "close", None)
            if callable(close):
                await close()

    collaborator = get_collaborator(cfg)
    try:
        orchestrator = RefreshOrchestrator(
            collaborator, state, settings=FetcherSettings.from_config(cfg)
        )
        await orchestrator.refresh(state.location_input)
    finally:
        await collaborator.aclose()
    return state.snapshot()


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    load_env_files()
    cfg = AppConfig.load_from_env()
    configure_logging(json_logs=args.json_logs or cfg.log_json, log_level=cfg.log_level)
    if args.location is not None and not args.location.strip():
        raise SystemExit("location must not be empty")

    try:
        snapshot = asyncio.run(run(args, cfg))
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors(include_url=False)
        )
        raise SystemExit(f"invalid profile: {problems}") from exc
    print(json.dumps(snapshot, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
