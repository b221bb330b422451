"""
Scan a video file or camera stream and print the stabilized reading.
"""
import argparse
import asyncio
import json
import os
import sys

import cv2
from loguru import logger

# Add project root to python path to allow imports
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from steadytext.config import get_settings, configure_logging
from steadytext.ocr import EasyOCRProvider, TesseractProvider
from steadytext.stabilization import StabilizationEngine


def build_provider(name, use_gpu=False):
    if name == "tesseract":
        return TesseractProvider()
    return EasyOCRProvider(use_gpu=use_gpu)


def open_capture(source):
    # A bare integer means a camera index
    capture = cv2.VideoCapture(int(source) if source.isdigit() else source)
    if not capture.isOpened():
        raise SystemExit(f"Error: could not open video source '{source}'")
    return capture


async def stream(engine, capture, timeout, fps):
    await engine.start()
    deadline = asyncio.get_running_loop().time() + timeout

    try:
        while engine.is_running and asyncio.get_running_loop().time() < deadline:
            ok, frame = capture.read()
            if not ok:
                break
            engine.submit_frame(frame)
            await asyncio.sleep(1.0 / fps)

        return await engine.wait_for_decision(timeout=max(0.0, deadline - asyncio.get_running_loop().time()))
    finally:
        await engine.stop()


async def burst(engine, capture):
    def grab():
        ok, frame = capture.read()
        if not ok:
            raise RuntimeError("frame capture failed")
        return frame

    return await engine.burst_capture(grab)


def main():
    parser = argparse.ArgumentParser(description="Stabilized OCR over a video stream")
    parser.add_argument("source", help="Video file path or camera index")
    parser.add_argument("--provider", choices=["easyocr", "tesseract"], default="easyocr")
    parser.add_argument("--gpu", action="store_true", help="Use GPU for EasyOCR")
    parser.add_argument("--burst", action="store_true", help="Use the burst majority vote instead of streaming")
    parser.add_argument("--timeout", type=float, default=10.0, help="Give up after this many seconds")
    parser.add_argument("--fps", type=float, default=30.0, help="Frame submission rate")
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--json", action="store_true", help="Print the decision as JSON")

    args = parser.parse_args()

    configure_logging(args.log_level)
    settings = get_settings()

    engine = StabilizationEngine(
        provider=build_provider(args.provider, args.gpu),
        settings=settings,
        on_status=lambda message: logger.info(message),
    )

    capture = open_capture(args.source)
    try:
        if args.burst:
            decision = asyncio.run(burst(engine, capture))
        else:
            decision = asyncio.run(stream(engine, capture, args.timeout, args.fps))
    finally:
        capture.release()

    if decision is None:
        print("No stable text detected.")
        sys.exit(1)

    if args.json:
        print(json.dumps(decision.to_dict()))
        return

    print(f"{decision.text}\t(score={decision.score:.3f}, source={decision.source.value}, "
          f"elapsed={decision.elapsed_ms:.0f}ms)")
    print(f"Frames: {engine.stats.to_dict()}")


if __name__ == "__main__":
    main()
