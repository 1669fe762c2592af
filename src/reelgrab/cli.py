"""Command line entry point for reelgrab."""

import argparse
import sys

import anyio
import msgspec
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from . import config, logger
from .clients import cleanup_download_clients, get_download_clients, init_download_clients
from .core import get_core, init_core
from .db import cleanup_database, get_database, init_database
from .indexers import cleanup_indexers, init_indexers
from .notifier import init_notifier
from .quality import ScoringSettings, evaluate, get_preset
from .release import parse
from .scanner import get_scanner, init_scanner
from .scheduler import JobManager


def _print_json(value) -> None:
    sys.stdout.write(msgspec.json.format(msgspec.json.encode(value)).decode() + "\n")


def cmd_parse(args: argparse.Namespace) -> int:
    release = parse(args.title)
    payload = msgspec.to_builtins(release)
    payload["block_reasons"] = [str(reason) for reason in release.block_reasons]
    _print_json(payload)
    return 0


def cmd_score(args: argparse.Namespace) -> int:
    try:
        target = get_preset(args.preset)
    except KeyError:
        logger.error("Unknown preset: %s", args.preset)
        return 2
    release = parse(args.title)
    evaluation = evaluate(release, target, ScoringSettings(), seeders=args.seeders)
    _print_json(evaluation)
    return 0


async def _run_daemon() -> None:
    cfg = config.cfg
    scheduler = AsyncIOScheduler()

    await init_database()
    database = get_database()
    await database.save_naming_templates(cfg.naming)
    for name, target in cfg.quality.targets.items():
        if target.name != name:
            target = msgspec.structs.replace(target, name=name)
        await database.save_quality_target(target)

    if cfg.global_config.notification_urls:
        init_notifier(cfg.global_config.notification_urls)
    await init_scanner(cfg.scanner.url, cfg.scanner.token)
    await init_indexers(cfg.indexers)
    await init_download_clients(cfg.downloader.clients)
    await init_core(scheduler)

    core = get_core()
    await core.recover_records()
    job_manager = JobManager(scheduler=scheduler, database=database, core=core)
    job_manager.start_jobs(list(get_download_clients()))
    scheduler.start()
    logger.success("reelgrab is running")

    try:
        await anyio.sleep_forever()
    finally:
        scheduler.shutdown(wait=False)
        await cleanup_download_clients()
        await cleanup_indexers()
        await get_scanner().close()
        await cleanup_database()


def cmd_run(args: argparse.Namespace) -> int:
    try:
        cfg = config.init_config(args.config)
    except config.ConfigError as e:
        logger.error("%s", e)
        return 2
    logger.init_logger(args.loglevel or cfg.global_config.loglevel)
    logger.header("reelgrab starting")
    try:
        anyio.run(_run_daemon, backend="asyncio")
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="reelgrab", description="Unattended media acquisition")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the search and download loops")
    run.add_argument("-c", "--config", default="config.yml", help="Path to the YAML config")
    run.add_argument("-l", "--loglevel", help="Override the configured log level")
    run.set_defaults(func=cmd_run)

    parse_cmd = subparsers.add_parser("parse", help="Parse a release title and print it as JSON")
    parse_cmd.add_argument("title")
    parse_cmd.set_defaults(func=cmd_parse)

    score = subparsers.add_parser("score", help="Evaluate a release title against a preset")
    score.add_argument("title")
    score.add_argument("--preset", default="Balanced", help="Built-in quality preset name")
    score.add_argument("--seeders", type=int, default=None)
    score.set_defaults(func=cmd_score)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
