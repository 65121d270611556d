"""GifDrift command-line interface.

Argparse-based CLI that initializes logging early and dispatches to the GUI
or to the headless tools. Exposed via ``python -m gifdrift``.

Exit codes: 0 success, 1 load/decode failure, 2 usage error.
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import sys
from typing import Optional, Sequence

from . import __app_name__, __version__
from .config import AppConfig
from .content.frames import DecodeError, FrameStore, decode
from .content.loader import FetchError, fetch_asset
from .logging_utils import LogMode, get_default_log_path, setup_logging

logger = logging.getLogger(__name__)


def _add_logging_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set log level (default: WARNING)",
    )
    parser.add_argument(
        "--log-mode",
        choices=[mode.value for mode in LogMode],
        default=LogMode.NORMAL.value,
        help="Logging preset: quiet suppresses console info, perf forces DEBUG",
    )
    parser.add_argument(
        "--log-file",
        default=str(get_default_log_path()),
        help="Path to log file (default: per-user GifDrift directory)",
    )
    parser.add_argument(
        "--log-format",
        choices=["plain", "json"],
        default="plain",
        help="Log format (plain or json)",
    )


def _build_logging_parent() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    _add_logging_args(parent)
    return parent


def _parse_size(text: str) -> tuple[int, int]:
    try:
        w, h = (int(part) for part in text.lower().split("x", 1))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got {text!r}") from None
    if w <= 0 or h <= 0:
        raise argparse.ArgumentTypeError(f"size must be positive, got {text!r}")
    return w, h


def _parse_scroll_step(text: str) -> tuple[float, float]:
    """``T:F`` -> (time in ms, scroll fraction 0-100)."""
    try:
        t, f = (float(part) for part in text.split(":", 1))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected TIME_MS:FRACTION, got {text!r}") from None
    if t < 0:
        raise argparse.ArgumentTypeError(f"time must be >= 0, got {text!r}")
    return t, f


def _positive_float(text: str) -> float:
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {text!r}") from None
    if not (math.isfinite(value) and value > 0):
        raise argparse.ArgumentTypeError(f"must be a finite number > 0, got {text!r}")
    return value


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}") from None
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be > 0, got {text!r}")
    return value


def _add_engine_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--speed", type=_positive_float, default=None, help="Playback speed multiplier")
    parser.add_argument("--no-loop", action="store_true", help="Play each GIF once instead of looping")
    parser.add_argument("--interval-ms", type=_positive_int, default=None, help="Spawn interval in ms")
    parser.add_argument("--threshold", type=float, default=None, help="Scroll fraction (0-100) that enables spawning")


def build_parser() -> argparse.ArgumentParser:
    logging_parent = _build_logging_parent()
    parser = argparse.ArgumentParser(
        prog="gifdrift",
        description=f"{__app_name__} CLI",
        parents=[logging_parent],
    )
    parser.add_argument("--version", action="version", version=f"{__app_name__} {__version__}")
    sub = parser.add_subparsers(dest="command", required=False)

    def add_subparser(name: str, **kwargs: object) -> argparse.ArgumentParser:
        parents = list(kwargs.pop("parents", []))
        parents.insert(0, logging_parent)
        return sub.add_parser(name, parents=parents, **kwargs)

    p_run = add_subparser("run", help="Start the GUI (default)")
    p_run.add_argument("--asset", default=None, help="GIF path or http(s) URL")
    p_run.add_argument("--mode", choices=["pool", "showcase", "gallery"], default=None, help="Scene to show")
    p_run.add_argument("--image", dest="images", action="append", default=None,
                       help="Gallery image path (repeatable)")
    p_run.add_argument("--windowed", type=_parse_size, default=None, metavar="WxH", help="Window size")
    _add_engine_args(p_run)

    p_inspect = add_subparser("inspect", help="Decode an asset and print its frame metadata")
    p_inspect.add_argument("source", help="GIF path or http(s) URL")
    p_inspect.add_argument("--json", action="store_true", help="Print JSON instead of a table")

    p_sim = add_subparser("simulate", help="Headless pool run on a simulated clock")
    p_sim.add_argument("source", help="GIF path or http(s) URL")
    p_sim.add_argument("--scroll", dest="steps", type=_parse_scroll_step, action="append", default=[],
                       metavar="T:F", help="At time T (ms) the scroll fraction becomes F (repeatable)")
    p_sim.add_argument("--until", type=float, default=None, metavar="MS", help="Run the clock until MS")
    p_sim.add_argument("--json", action="store_true", help="Print one JSON object per step")
    _add_engine_args(p_sim)

    add_subparser("selftest", help="Quick import + decode smoke test")
    return parser


def _apply_engine_args(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    if args.speed is not None:
        config.playback.speed = args.speed
    if args.no_loop:
        config.playback.loop = False
    if args.interval_ms is not None:
        config.spawn.interval_ms = args.interval_ms
    if args.threshold is not None:
        config.spawn.threshold = args.threshold
    return config


def _load_store(source: str) -> Optional[FrameStore]:
    try:
        return decode(fetch_asset(source), source=source)
    except (FetchError, DecodeError) as e:
        logger.error("Cannot load %s: %s", source, e)
        print(f"error: cannot load {source}: {e}", file=sys.stderr)
        return None


def cmd_inspect(args) -> int:
    store = _load_store(args.source)
    if store is None:
        return 1
    info = store.describe()
    if args.json:
        print(json.dumps(info, indent=2))
        return 0
    print(f"{info['source']}: {info['width']}x{info['height']}, {info['frame_count']} frames, "
          f"{info['total_duration_ms']} ms")
    for frame in info["frames"]:
        left, top, width, height = frame["rect"]
        print(f"  #{frame['index']:<4d} rect=({left},{top},{width},{height}) "
              f"disposal={frame['disposal']:<10s} {frame['duration_ms']} ms")
    return 0


def run_simulation(store: FrameStore, steps: Sequence[tuple[float, float]],
                   config: AppConfig, until_ms: Optional[float] = None) -> list[dict]:
    """Drive the pool with scroll changes on a :class:`ManualScheduler`.

    Returns one record per step (and one for ``until_ms`` when given).
    """
    from .engine.loop import RenderLoop
    from .engine.pool import InstancePool
    from .engine.scheduler import ManualScheduler
    from .engine.spawn import SpawnController
    from .engine.tween import Tweener
    from .scene.graph import Scene

    scheduler = ManualScheduler()
    tweener = Tweener()
    scene = Scene(config.scene.pool_background)
    pool = InstancePool(scene, scheduler, tweener, config.instance, config.playback)
    spawn = SpawnController(pool, scheduler, config.spawn)
    loop = RenderLoop(scheduler, tweener, pool, lambda: None,
                      frame_interval_ms=1000.0 / max(1, config.scene.fps))

    pool.load_asset(store)
    loop.start()

    def snapshot(t: float, fraction: Optional[float]) -> dict:
        return {"t_ms": t, "fraction": fraction, "spawning": spawn.spawning,
                "live": len(pool), "created": pool.created, "retired": pool.retired}

    records = []
    for t, fraction in sorted(steps, key=lambda step: step[0]):
        scheduler.run_until(t)
        spawn.evaluate(fraction)
        records.append(snapshot(t, fraction))
    if until_ms is not None:
        scheduler.run_until(until_ms)
        records.append(snapshot(until_ms, spawn.last_fraction))

    spawn.shutdown()
    pool.clear_all()
    loop.stop()
    return records


def cmd_simulate(args) -> int:
    if not args.steps and args.until is None:
        print("error: simulate needs at least one --scroll step or --until", file=sys.stderr)
        return 2
    store = _load_store(args.source)
    if store is None:
        return 1
    config = _apply_engine_args(AppConfig.from_env(), args)
    for record in run_simulation(store, args.steps, config, args.until):
        if args.json:
            print(json.dumps(record))
        else:
            fraction = "-" if record["fraction"] is None else f"{record['fraction']:.1f}"
            print(f"t={record['t_ms']:.0f}ms fraction={fraction} spawning={record['spawning']} "
                  f"live={record['live']} created={record['created']} retired={record['retired']}")
    return 0


def selftest() -> int:
    """Fast import + decode smoke test. Returns exit code."""
    try:
        import io

        import PyQt6  # noqa: F401  # Ensure UI deps import
        from PIL import Image

        from .content.composite import CompositeBuffer
        from .engine.playback import PlaybackClock
        from .engine.scheduler import ManualScheduler

        frames = [Image.new("RGBA", (4, 4), color) for color in ((255, 0, 0, 255), (0, 0, 255, 255))]
        buf = io.BytesIO()
        frames[0].save(buf, format="GIF", save_all=True, append_images=frames[1:], duration=50, loop=0)
        store = decode(buf.getvalue(), source="<selftest>")
        if store.frame_count != 2:
            raise RuntimeError(f"expected 2 frames, decoded {store.frame_count}")

        scheduler = ManualScheduler()
        clock = PlaybackClock(store, CompositeBuffer(store), scheduler)
        clock.start()
        scheduler.advance(store.total_duration_ms)
        clock.stop()

        msg = f"Selftest OK: decoded {store.frame_count} frames, {clock.ticks} playback ticks"
        logger.info(msg)
        print(msg)
        return 0
    except Exception as e:
        logger.error("Selftest failed: %s", e)
        print(f"Selftest failed: {e}", file=sys.stderr)
        return 1


def cmd_run(args) -> int:
    config = _apply_engine_args(AppConfig.from_env(), args)
    if args.asset is not None:
        config.asset = args.asset
    if args.mode is not None:
        config.mode = args.mode
    if args.images:
        config.gallery_images = tuple(args.images)
    if args.windowed is not None:
        config.scene.windowed_size = args.windowed
    if config.mode == "gallery" and not config.gallery_images:
        print("error: gallery mode needs at least one --image", file=sys.stderr)
        return 2

    from .app import run
    return run(config)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging before doing any work
    setup_logging(
        level=args.log_level,
        log_file=args.log_file,
        json_format=(args.log_format == "json"),
        log_mode=args.log_mode,
        add_console=True,
    )

    cmd = args.command or "run"
    if cmd == "run":
        if args.command is None:
            args = parser.parse_args(["run", *(argv if argv is not None else sys.argv[1:])])
        return cmd_run(args)
    if cmd == "inspect":
        return cmd_inspect(args)
    if cmd == "simulate":
        return cmd_simulate(args)
    if cmd == "selftest":
        return selftest()
    parser.print_help()
    return 2
