"""Run one face swap from the command line and wait for the result."""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
from dataclasses import dataclass
from pathlib import Path

from src.faceswap.config import load_config
from src.faceswap.images.catalog import find_frame, find_target
from src.faceswap.images.frame_compositor import FrameCompositor, decode_data_url
from src.faceswap.images.image_models import UploadedImage
from src.faceswap.images.image_pipeline import ImagePipeline
from src.faceswap.logging import configure_logging
from src.faceswap.swap.scheduler import AsyncioScheduler
from src.faceswap.swap.swap_errors import ConfigurationError, SwapError
from src.faceswap.swap.swap_models import SwapState, SwapStatus
from src.faceswap.swap.task_manager import TaskLifecycleManager
from src.faceswap.vendor.task_client import TaskClient


@dataclass(slots=True)
class RunSummary:
    state: SwapState
    framed_path: Path | None = None


async def run_swap(
    source: Path,
    target: str,
    *,
    frame_id: str | None = None,
    output: Path | None = None,
    timeout: float | None = None,
) -> RunSummary:
    config = load_config()
    frame = find_frame(frame_id) if frame_id else None
    if frame is not None and frame.path is not None and not config.frame_base_url:
        raise ConfigurationError("FRAME_BASE_URL is not configured")
    pipeline = ImagePipeline(
        max_file_size_bytes=config.image_limits.max_file_size_bytes,
        max_dimension=config.image_limits.max_dimension,
    )
    content_type = mimetypes.guess_type(source.name)[0] or "application/octet-stream"
    upload = UploadedImage(data=source.read_bytes(), content_type=content_type, filename=source.name)
    advice = pipeline.validate(upload)
    if advice is not None:
        print(f"{advice.level.value}: {advice.message}", file=sys.stderr)
        if advice.is_error:
            raise SwapError(advice.message)
    processed = pipeline.process(upload)

    manager = TaskLifecycleManager(
        client=TaskClient(
            api_key=config.vendor.api_key,
            base_url=config.vendor.base_url,
            model=config.vendor.model,
            timeout_seconds=config.vendor.timeout_seconds,
        ),
        scheduler=AsyncioScheduler(),
        poll_interval_seconds=config.polling.interval_seconds,
        max_attempts=config.polling.max_attempts,
    )
    await manager.submit(target, processed.as_inline(), source_descriptor=processed.filename)
    state = await manager.wait_until_terminal(timeout=timeout)
    summary = RunSummary(state=state)

    if state.status is SwapStatus.SUCCEEDED and frame_id and output is not None:
        frame_url = frame.resolve_url(config.frame_base_url) if frame is not None else None
        if frame_url is not None:
            data_url = await FrameCompositor().combine(state.result_url or "", frame_url)
            _, data = decode_data_url(data_url)
            output.write_bytes(data)
            summary.framed_path = output
    return summary


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Swap a face onto a template image.")
    parser.add_argument("source", type=Path, help="Photo containing the face to use.")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--target", help="Target image URL.")
    target.add_argument("--target-id", help="Id of a predefined template (1-7).")
    parser.add_argument("--frame", help="Frame id to draw over the result (gold, blue, red, black).")
    parser.add_argument("--output", type=Path, help="Where to write the framed JPEG.")
    parser.add_argument("--timeout", type=float, default=None, help="Give up waiting after N seconds.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging()
    try:
        target = args.target or find_target(args.target_id).url
        summary = asyncio.run(
            run_swap(
                args.source,
                target,
                frame_id=args.frame,
                output=args.output,
                timeout=args.timeout,
            )
        )
    except (SwapError, KeyError, OSError, asyncio.TimeoutError) as exc:
        print(f"faceswap failed: {exc}", file=sys.stderr)
        return 2

    state = summary.state
    if state.status is not SwapStatus.SUCCEEDED:
        print(f"faceswap failed: {state.error}", file=sys.stderr)
        return 1
    print(f"faceswap done, task_id={state.task_id}, result_url={state.result_url}", file=sys.stdout)
    if summary.framed_path is not None:
        print(f"framed result written to {summary.framed_path}", file=sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
