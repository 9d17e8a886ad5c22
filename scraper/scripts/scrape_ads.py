#!/usr/bin/env python3
"""CLI shim for the ad library CTA pipeline."""
from __future__ import annotations

import asyncio

from adlib_scraper.logging import configure_logging, logging_context, set_global_context
from adlib_scraper.pipeline import get_scraper_version, parse_args, run

SCRIPT_NAME = "adlib"


def main() -> None:
    configure_logging()
    set_global_context(app="adlib_scraper", pipeline=SCRIPT_NAME)
    version = get_scraper_version()
    with logging_context(script=SCRIPT_NAME, scraper_version=version):
        config, output = parse_args()
        asyncio.run(run(config, output))


if __name__ == "__main__":
    main()
