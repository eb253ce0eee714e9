#!/usr/bin/env python3
"""
worldgrid - world grid and village resolution tools.

Seed and inspect the village registry, and probe the live world grid.
"""

import argparse
import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

from worldgrid.core import world_to_grid
from worldgrid.config import ConfigError, WorldGridConfig, load_config, load_village_seeds
from worldgrid.logging_config import log_cli_cmd, setup_logging
from worldgrid.services import (
    AgentSourceError,
    AgentSpawnGate,
    HttpAgentSource,
    VillageMapLoader,
    VillageNotFoundError,
    WorldGridRuntime,
)
from worldgrid.storage import HttpBlobStore, Storage, VillageStoreError, open_blob_store

logger = logging.getLogger("worldgrid.main")


# =============================================================================
# Commands
# =============================================================================


async def cmd_seed(storage: Storage, config: WorldGridConfig, args: argparse.Namespace) -> int:
    villages = load_village_seeds(args.file, config)
    if args.clear:
        removed = await storage.villages.clear()
        print(f"Cleared {removed} village(s)")

    for village in villages:
        await storage.villages.save(village)
        print(
            f"  {village.slug}: grid ({village.grid_x}, {village.grid_y}) "
            f"{village.grid_width}x{village.grid_height}"
        )
    print(f"Seeded {len(villages)} village(s) from {args.file}")
    return 0


async def cmd_list(storage: Storage, config: WorldGridConfig, args: argparse.Namespace) -> int:
    villages = await storage.villages.get_all()
    if not villages:
        print("No villages registered.")
        return 0

    print(f"{'SLUG':<24} {'GRID':<10} {'SIZE':<6} {'CENTER':<12} TMJ")
    for v in villages:
        center = v.center()
        print(
            f"{v.slug:<24} {f'{v.grid_x},{v.grid_y}':<10} {f'{v.grid_width}x{v.grid_height}':<6} "
            f"{f'({center.x},{center.y})':<12} {v.tmj_url}"
        )
    return 0


async def cmd_delete(storage: Storage, config: WorldGridConfig, args: argparse.Namespace) -> int:
    if await storage.villages.delete(args.slug):
        print(f"Deleted village {args.slug}")
        return 0
    print(f"Village {args.slug} not found")
    return 1


async def _start_runtime(storage: Storage, blobs, slug: str) -> WorldGridRuntime:
    runtime = WorldGridRuntime(storage.villages, VillageMapLoader(blobs))
    await runtime.initialize(slug)
    return runtime


async def _close_blobs(blobs) -> None:
    if isinstance(blobs, HttpBlobStore):
        await blobs.close()


async def cmd_probe(storage: Storage, config: WorldGridConfig, args: argparse.Namespace) -> int:
    blobs = open_blob_store(config.asset_location, timeout=config.http_timeout)
    try:
        runtime = await _start_runtime(storage, blobs, args.slug)
        print(f"Loaded villages: {', '.join(sorted(runtime.loaded_slugs)) or '(none)'}")
        slug = runtime.grid_index.lookup(*world_to_grid(args.x, args.y))
        state = runtime.get_state(slug).value if slug else "-"
        blocked = runtime.is_collision_at(args.x, args.y)
        print(f"World ({args.x}, {args.y}): village={slug or '-'} state={state} blocked={blocked}")
    finally:
        await _close_blobs(blobs)
    return 0


async def cmd_spawn(storage: Storage, config: WorldGridConfig, args: argparse.Namespace) -> int:
    agents_url = args.agents_url or config.agents_url
    if not agents_url:
        print("No agents URL configured (set WORLDGRID_AGENTS_URL or pass --agents-url)")
        return 1

    blobs = open_blob_store(config.asset_location, timeout=config.http_timeout)
    try:
        runtime = await _start_runtime(storage, blobs, args.slug)
        gate = AgentSpawnGate(runtime)
        gate.attach()
        async with HttpAgentSource(agents_url, timeout=config.http_timeout) as source:
            events = await gate.fetch_agents(source)
        for event in events:
            print(f"  spawned {event.name} ({event.agent_url}) in {event.village} at ({event.x}, {event.y})")
        for agent in gate.pending:
            print(f"  pending {agent.name} ({agent.url}) at ({agent.x}, {agent.y})")
        print(f"{len(events)} spawned, {len(gate.pending)} pending")
    finally:
        await _close_blobs(blobs)
    return 0


COMMANDS = {
    "seed": cmd_seed,
    "list": cmd_list,
    "delete": cmd_delete,
    "probe": cmd_probe,
    "spawn": cmd_spawn,
}


async def run_command(config: WorldGridConfig, args: argparse.Namespace) -> int:
    async with Storage(config.data_dir) as storage:
        return await COMMANDS[args.command](storage, config, args)


# =============================================================================
# Entry point
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="worldgrid",
        description="worldgrid - world grid and village resolution tools",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Path to data directory (default: $WORLDGRID_DATA_DIR or ./data)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging on the console",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed", help="Register villages from a YAML seed file")
    seed.add_argument("file", type=Path)
    seed.add_argument("--clear", action="store_true", help="Delete all villages first")

    sub.add_parser("list", help="List registered villages")

    delete = sub.add_parser("delete", help="Delete a village")
    delete.add_argument("slug")

    probe = sub.add_parser("probe", help="Load the world at a village and probe a position")
    probe.add_argument("slug")
    probe.add_argument("x", type=int)
    probe.add_argument("y", type=int)

    spawn = sub.add_parser("spawn", help="Run the agent spawn gate around a village")
    spawn.add_argument("slug")
    spawn.add_argument("--agents-url", help="Agents API base URL (default: $WORLDGRID_AGENTS_URL)")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config()
    except ConfigError as e:
        print(f"Error: {e}")
        return 1
    if args.data_dir is not None:
        config = replace(config, data_dir=args.data_dir)

    # Always log DEBUG to file, console level depends on --debug
    console_level = logging.DEBUG if args.debug else logging.WARNING
    setup_logging(config.data_dir, console_level=console_level)
    log_cli_cmd(logger, args.command, " ".join(f"{k}={v}" for k, v in vars(args).items() if k != "command"))

    try:
        return asyncio.run(run_command(config, args))
    except (ConfigError, VillageStoreError, VillageNotFoundError, AgentSourceError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
