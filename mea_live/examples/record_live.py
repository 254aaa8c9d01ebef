#!/usr/bin/env python3
"""Record live sample frames from an MEA and log a summary of each."""

import argparse
import asyncio
import logging
import sys

import numpy as np

from ..core.config import Config, FailurePolicy
from ..core.exceptions import AcquisitionError, PartialAcquisitionError
from ..core.logging_setup import setup_logging
from ..data_acquisition.live_mea import LiveMEA

logger = logging.getLogger("mea_live.record")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Record live data from an MEA device")
    parser.add_argument("--url", default=None, help="WebSocket URL of the MEA server (default: production server)")
    parser.add_argument("--mea-id", type=int, default=1, help="MEA to record from (1-4)")
    parser.add_argument("--samples", type=int, default=1, help="Number of samples to record")
    parser.add_argument("--timeout", type=float, default=10.0, help="Per-request timeout in seconds")
    parser.add_argument("--policy", default="abort", choices=[p.value for p in FailurePolicy],
                        help="What to do when a sample fails")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    return parser


def summarize(index: int, data) -> str:
    """One-line summary of a recorded sample."""
    matrix = data.to_numpy()
    return (f"Sample {index}: {data.timestamp} | {matrix.shape[0]} electrodes x {matrix.shape[1]} samples"
            f" | min={float(np.min(matrix)):.4f} max={float(np.max(matrix)):.4f}")


async def main(argv=None) -> int:
    """Main function."""
    args = build_parser().parse_args(argv)

    config = Config.create_default(args.url)
    config.server.request_timeout = args.timeout
    config.acquisition.failure_policy = FailurePolicy(args.policy)
    config.log_level = args.log_level

    if config.enable_logging:
        setup_logging(config.log_level)

    logger.info("Recording %d sample(s) from MEA %d", args.samples, args.mea_id)

    async with LiveMEA(config) as mea:
        try:
            samples = await mea.record_n_samples(args.mea_id, args.samples)
        except PartialAcquisitionError as e:
            for index, sample in enumerate(e.samples, 1):
                logger.info(summarize(index, sample))
            for index, failure in e.failures:
                logger.error("Sample %d failed: %s", index + 1, failure)
            return 1
        except AcquisitionError as e:
            logger.error("Recording failed: %s", e)
            return 1

    for index, sample in enumerate(samples, 1):
        logger.info(summarize(index, sample))
    return 0


def main_sync() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nRecording stopped by user.")


if __name__ == "__main__":
    main_sync()
