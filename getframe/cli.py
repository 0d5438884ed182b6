#!/usr/bin/env python3
"""
getframe CLI - Thin entrypoint over VideoService.

Commands:
- info:   Print video metadata
- frame:  Save one frame as PNG
- range:  Save a range of frames as numbered PNGs next to the video
- encode: Encode an image sequence into a video
- config: Show or set the FFmpeg path

Ctrl+C cancels the running operation (the FFmpeg/FFprobe process tree is
killed and partial output removed).

Exit Codes:
===========
- 0: Success
- 1: Validation error (bad arguments, invalid frame range)
- 2: Tool failure (ffmpeg/ffprobe failed)
- 3: Cancelled
- 4: System error (tool or file not found)
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Awaitable, Callable, List, NoReturn, Optional

from .errors import ErrorCode
from .execution.cancellation import CancellationToken
from .execution.progress import ProgressEvent
from .service import VideoService, clamp_frame_index
from .settings import DEFAULT_SETTINGS_PATH, JsonSettingsStore

EXIT_SUCCESS = 0
EXIT_VALIDATION = 1
EXIT_TOOL_FAILURE = 2
EXIT_CANCELLED = 3
EXIT_SYSTEM = 4

_EXIT_CODES = {
    ErrorCode.NONE: EXIT_SUCCESS,
    ErrorCode.INVALID_FRAME_RANGE: EXIT_VALIDATION,
    ErrorCode.PROBER_FAILED: EXIT_TOOL_FAILURE,
    ErrorCode.ENCODER_FAILED: EXIT_TOOL_FAILURE,
    ErrorCode.METADATA_RETRIEVAL_FAILED: EXIT_TOOL_FAILURE,
    ErrorCode.OPERATION_CANCELLED: EXIT_CANCELLED,
    ErrorCode.PROBER_NOT_FOUND: EXIT_SYSTEM,
    ErrorCode.ENCODER_NOT_FOUND: EXIT_SYSTEM,
    ErrorCode.FILE_NOT_FOUND: EXIT_SYSTEM,
}


def exit_code_for(code: ErrorCode) -> int:
    return _EXIT_CODES[code]


def print_progress(event: ProgressEvent) -> None:
    print(f"[{event.percent:3d}%] {event.message}", file=sys.stderr)


def run_cancellable(operation: Callable[[CancellationToken], Awaitable[int]]) -> int:
    """Run an operation with Ctrl+C wired to its cancellation token."""
    token = CancellationToken()

    async def _main() -> int:
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, token.cancel)
            installed = True
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support
            previous = signal.signal(
                signal.SIGINT, lambda *_: loop.call_soon_threadsafe(token.cancel)
            )
            installed = False
        try:
            return await operation(token)
        finally:
            if installed:
                loop.remove_signal_handler(signal.SIGINT)
            else:
                signal.signal(signal.SIGINT, previous)

    return asyncio.run(_main())


def _report_failure(message: str, code: ErrorCode) -> int:
    if code == ErrorCode.OPERATION_CANCELLED:
        print(f"Cancelled: {message}", file=sys.stderr)
    else:
        print(f"ERROR: {message}", file=sys.stderr)
    return exit_code_for(code)


def cmd_info(service: VideoService, args: argparse.Namespace) -> int:
    async def operation(token: CancellationToken) -> int:
        progress = print_progress if args.progress else None
        metadata = await service.get_video_info(args.file, progress, token)
        if not metadata.ok:
            return _report_failure(metadata.status_message, metadata.error_code)
        if args.json:
            print(metadata.model_dump_json(indent=2))
        else:
            print(metadata.build_info_text())
        return EXIT_SUCCESS

    return run_cancellable(operation)


def cmd_frame(service: VideoService, args: argparse.Namespace) -> int:
    async def operation(token: CancellationToken) -> int:
        frame_index = args.index
        if args.clamp:
            metadata = await service.get_video_info(args.file, cancel_token=token)
            if not metadata.ok:
                return _report_failure(metadata.status_message, metadata.error_code)
            frame_index = clamp_frame_index(metadata, frame_index)

        if args.width or args.height:
            result = await service.get_frame(args.file, frame_index, args.width, args.height, token)
            if result.ok:
                Path(args.output).write_bytes(result.data)
        else:
            result = await service.save_frame_as_png(args.file, frame_index, args.output, token)

        if not result.ok:
            return _report_failure(result.message, result.error_code)
        print(f"✓ Frame {frame_index} saved: {args.output}")
        return EXIT_SUCCESS

    return run_cancellable(operation)


def cmd_range(service: VideoService, args: argparse.Namespace) -> int:
    async def operation(token: CancellationToken) -> int:
        result = await service.extract_frame_range(args.file, args.start, args.end, token)
        if not result.ok:
            return _report_failure(result.describe(), result.error_code)
        print(f"✓ {len(result.list_frames())} frames written: {result.describe()}")
        return EXIT_SUCCESS

    return run_cancellable(operation)


def cmd_encode(service: VideoService, args: argparse.Namespace) -> int:
    async def operation(token: CancellationToken) -> int:
        result = await service.encode_images(
            args.images,
            args.fps,
            output_extension=args.ext,
            encoder_preset=args.preset,
            encoder_quality=args.crf,
            progress=print_progress,
            cancel_token=token,
        )
        if not result.ok:
            return _report_failure(result.message, result.error_code)
        print(f"✓ Video saved: {result.output_path}")
        return EXIT_SUCCESS

    return run_cancellable(operation)


def cmd_config(service: VideoService, args: argparse.Namespace) -> int:
    if args.ffmpeg:
        if not Path(args.ffmpeg).is_file():
            print(f"ERROR: FFmpeg executable not found: {args.ffmpeg}", file=sys.stderr)
            return EXIT_SYSTEM
        service.locator.remember(args.ffmpeg)

    encoder_path = service.locator.encoder_path()
    prober_path = service.locator.prober_path(encoder_path)
    print(f"ffmpeg:  {encoder_path or '(not found)'}")
    print(f"ffprobe: {prober_path or '(not found)'}")
    return EXIT_SUCCESS if encoder_path else EXIT_SYSTEM


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="getframe",
        description="getframe - Inspect videos, grab frames and encode image sequences with FFmpeg",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--settings",
        type=Path,
        default=DEFAULT_SETTINGS_PATH,
        help=f"Settings file (default: {DEFAULT_SETTINGS_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to execute")

    # Info command
    parser_info = subparsers.add_parser("info", help="Print video metadata")
    parser_info.add_argument("file", help="Path to video file")
    parser_info.add_argument("--json", action="store_true", help="Print metadata as JSON")
    parser_info.add_argument("--progress", action="store_true", help="Show analysis progress")
    parser_info.set_defaults(func=cmd_info)

    # Frame command
    parser_frame = subparsers.add_parser("frame", help="Save one frame as PNG")
    parser_frame.add_argument("file", help="Path to video file")
    parser_frame.add_argument("index", type=int, help="0-based frame index")
    parser_frame.add_argument("-o", "--output", required=True, help="Output PNG path")
    parser_frame.add_argument("--width", type=int, default=None, help="Scale to this width")
    parser_frame.add_argument("--height", type=int, default=None, help="Scale to this height")
    parser_frame.add_argument(
        "--clamp",
        action="store_true",
        help="Clamp the index to the video's frame count (probes the video first)",
    )
    parser_frame.set_defaults(func=cmd_frame)

    # Range command
    parser_range = subparsers.add_parser("range", help="Save frames START..END as numbered PNGs")
    parser_range.add_argument("file", help="Path to video file")
    parser_range.add_argument("start", type=int, help="First frame index")
    parser_range.add_argument("end", type=int, help="Last frame index (inclusive)")
    parser_range.set_defaults(func=cmd_range)

    # Encode command
    parser_encode = subparsers.add_parser("encode", help="Encode images into a video")
    parser_encode.add_argument("images", nargs="+", help="Image files in display order")
    parser_encode.add_argument("--fps", type=float, required=True, help="Frames per second")
    parser_encode.add_argument("--ext", default=".mp4", help="Output extension (default: .mp4)")
    parser_encode.add_argument("--preset", default=None, help="x264 preset (default: fast)")
    parser_encode.add_argument("--crf", type=int, default=None, help="x264 CRF (default: 23)")
    parser_encode.set_defaults(func=cmd_encode)

    # Config command
    parser_config = subparsers.add_parser("config", help="Show or set the FFmpeg path")
    parser_config.add_argument("--ffmpeg", default=None, help="Path to the ffmpeg executable")
    parser_config.set_defaults(func=cmd_config)

    return parser


def run(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, dispatch, and return the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    service = VideoService(JsonSettingsStore(args.settings))
    try:
        return args.func(service, args)
    except ValueError as e:
        print(f"ERROR: Invalid arguments: {e}", file=sys.stderr)
        return EXIT_VALIDATION
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_SYSTEM


def main() -> NoReturn:
    """Main CLI entrypoint."""
    sys.exit(run())


if __name__ == "__main__":
    main()
