"""
termviz CLI - live bar spectrogram of captured audio in the terminal.

Entry point:
    termviz      - capture audio and draw it until Ctrl+C
"""

import argparse
import logging
import signal
import sys
import threading
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional

from termviz.capture import AudioCapture, CaptureError, list_sources
from termviz.config import (
    DEFAULT_CONFIG_PATH,
    ConfigError,
    VisualizerConfig,
    load_config,
    parse_colour,
    parse_glyph,
    parse_range,
    parse_size,
)
from termviz.logging_config import configure_logging
from termviz.pipeline import VisualizerPipeline
from termviz.ringbuffer import LatestFrameBuffer
from termviz.terminal import TerminalSession

# Fix Windows console encoding for unicode characters
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CAPTURE_FAILED = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="termviz",
        description="termviz - Live audio spectrogram in your terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  termviz                           # Visualize the default loopback/input device
  termviz -l                        # List audio sources and exit
  termviz -a blackhole              # Capture from a source matching "blackhole"
  termviz -c 255,0,128 -t '#'       # Pink bars drawn with '#'
  termviz -r 10,70 -s 80x24         # Custom dB range, fixed 80x24 size
        """,
    )

    # Audio source
    audio_group = parser.add_argument_group("Audio Source")
    audio_group.add_argument(
        "-l",
        "--application-list",
        action="store_true",
        help="List the audio sources that can be captured and exit",
    )
    audio_group.add_argument(
        "-a",
        "--app",
        action="append",
        default=[],
        metavar="NAME",
        help="Capture from the source whose name contains NAME (case-insensitive, repeatable)",
    )
    audio_group.add_argument(
        "--device", type=str, default=None, help="Input device index or exact name"
    )
    audio_group.add_argument(
        "--channel", type=int, default=None, help="Channel to visualize (default: 0)"
    )

    # Display options
    display_group = parser.add_argument_group("Display Options")
    display_group.add_argument(
        "-c",
        "--colour",
        type=str,
        default=None,
        metavar="R,G,B",
        help="Bar colour, each component 0-255 (default: terminal colour)",
    )
    display_group.add_argument(
        "-t",
        "--text",
        type=str,
        default=None,
        metavar="CHAR",
        help='Character used for the bars, exactly one (default: "┃")',
    )
    display_group.add_argument(
        "-r",
        "--range",
        type=str,
        default=None,
        metavar="LOW,HIGH",
        help="Decibel range; invalid ranges fall back to 0,60",
    )
    display_group.add_argument(
        "-s",
        "--size",
        type=str,
        default=None,
        metavar="WxH",
        help="Fixed visualizer size instead of following the terminal (e.g. 80x24)",
    )
    display_group.add_argument(
        "--half-window",
        action="store_true",
        help="Only transform the first half of each audio block (original macOS behaviour)",
    )

    # Configuration and diagnostics
    misc_group = parser.add_argument_group("Configuration")
    misc_group.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"JSON config file (default: {DEFAULT_CONFIG_PATH})",
    )
    misc_group.add_argument("--log-file", type=str, default=None, help="Write logs to this file")
    misc_group.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    return parser


def config_from_args(args: argparse.Namespace, base: Optional[VisualizerConfig] = None) -> VisualizerConfig:
    """
    Overlay command-line options on `base`.

    Malformed values are ignored so the previous (or default) value stays.
    """
    config = base if base is not None else VisualizerConfig()
    overrides = {}

    if args.text is not None:
        glyph = parse_glyph(args.text)
        if glyph is None:
            logger.debug(f"Ignoring --text {args.text!r}: must be one character")
        else:
            overrides["glyph"] = glyph

    if args.colour is not None:
        colour = parse_colour(args.colour)
        if colour is None:
            logger.debug(f"Ignoring --colour {args.colour!r}")
        else:
            overrides["font_colour"] = colour

    if args.range is not None:
        db_range = parse_range(args.range)
        if db_range is None:
            logger.debug(f"Ignoring --range {args.range!r}")
        else:
            overrides["db_range"] = db_range

    if args.size is not None:
        size = parse_size(args.size)
        if size is None:
            logger.debug(f"Ignoring --size {args.size!r}")
        else:
            overrides["fixed_size"] = size

    if args.app:
        overrides["apps"] = tuple(app.lower() for app in args.app)
    if args.device is not None:
        overrides["device"] = args.device
    if args.channel is not None and args.channel >= 0:
        overrides["channel"] = args.channel
    if args.half_window:
        overrides["half_window"] = True

    return replace(config, **overrides) if overrides else config


def run(
    config: VisualizerConfig,
    capture_factory: Callable[..., AudioCapture] = AudioCapture,
    session: Optional[TerminalSession] = None,
    pipeline: Optional[VisualizerPipeline] = None,
    stop_event: Optional[threading.Event] = None,
) -> int:
    """
    Capture and draw until interrupted.

    Returns:
        EXIT_OK after Ctrl+C/SIGTERM, EXIT_CAPTURE_FAILED on a capture error
    """
    stop_event = stop_event or threading.Event()
    buffer = LatestFrameBuffer()
    session = session or TerminalSession(config.font_colour)
    pipeline = pipeline or VisualizerPipeline(config)

    capture = capture_factory(
        buffer,
        apps=config.apps,
        device=config.device,
        sample_rate=config.sample_rate,
        block_size=config.block_size,
    )

    # Signal handlers
    def signal_handler(sig, frame):
        stop_event.set()

    previous_handlers = {}
    if threading.current_thread() is threading.main_thread():
        for sig in (signal.SIGINT, signal.SIGTERM):
            previous_handlers[sig] = signal.signal(sig, signal_handler)

    failure = None
    session.start()
    try:
        capture.start()
        pipeline.run(buffer, stop_event)
    except CaptureError as e:
        failure = e
    except KeyboardInterrupt:
        pass
    finally:
        capture.stop()
        buffer.close()
        session.restore()
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler)

    # Logged after restore so stderr output does not land inside the grid
    if failure is not None:
        logger.error(f"Audio capture failed: {failure}")
        print("Stream stopped with error", file=sys.stderr)
        return EXIT_CAPTURE_FAILED
    return EXIT_OK


def _list_sources() -> int:
    """Print capturable audio sources."""
    try:
        names = list_sources()
    except CaptureError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CAPTURE_FAILED

    for name in names:
        print(name)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_file)

    try:
        base = load_config(args.config)
    except ConfigError as e:
        logger.warning(f"{e}; using defaults")
        base = VisualizerConfig()

    config = config_from_args(args, VisualizerConfig.from_env(base))

    if args.application_list:
        return _list_sources()

    return run(config)


if __name__ == "__main__":
    sys.exit(main())
