"""Command-line entry point: ``python -m greenlight``."""

from __future__ import annotations

import argparse
import logging
from typing import List, Optional, Tuple

import uvicorn

from greenlight.config import GreenlightConfig, default_config
from greenlight.server import configure_logging, create_app

logger = logging.getLogger("greenlight")


def _bool_flag(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "y", "on"}:
        return True
    if lowered in {"0", "false", "no", "n", "off"}:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value: {value!r}")


def build_parser(defaults: GreenlightConfig = default_config) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="greenlight", description="Greenlight movie catalog API server.")
    parser.add_argument("--port", type=int, default=defaults.port, help="API server port")
    parser.add_argument("--host", default="0.0.0.0", help="Interface to bind")
    parser.add_argument("--env", default=defaults.env, help="Environment (development|staging|production)")
    parser.add_argument("--limiter-rps", type=float, default=defaults.limiter_rps, help="Rate limiter maximum requests per second")
    parser.add_argument("--limiter-burst", type=int, default=defaults.limiter_burst, help="Rate limiter maximum burst")
    parser.add_argument("--limiter-enabled", type=_bool_flag, default=defaults.limiter_enabled, help="Enable rate limiter")
    parser.add_argument(
        "--limiter-eviction-interval",
        type=float,
        default=defaults.limiter_eviction_interval,
        help="Seconds between idle client sweeps",
    )
    parser.add_argument(
        "--limiter-idle-threshold",
        type=float,
        default=defaults.limiter_idle_threshold,
        help="Seconds of inactivity before a client's limiter state is dropped",
    )
    parser.add_argument(
        "--shutdown-drain-deadline",
        type=float,
        default=defaults.shutdown_drain_deadline,
        help="Seconds to wait for background tasks on shutdown",
    )
    parser.add_argument(
        "--cors-trusted-origins",
        default=" ".join(defaults.cors_trusted_origins),
        help="Trusted CORS origins (space separated)",
    )
    return parser


def config_from_args(
    argv: Optional[List[str]] = None, defaults: GreenlightConfig = default_config
) -> Tuple[GreenlightConfig, str]:
    args = build_parser(defaults).parse_args(argv)
    return GreenlightConfig(
        port=args.port,
        env=args.env,
        limiter_enabled=args.limiter_enabled,
        limiter_rps=args.limiter_rps,
        limiter_burst=args.limiter_burst,
        limiter_eviction_interval=args.limiter_eviction_interval,
        limiter_idle_threshold=args.limiter_idle_threshold,
        trust_forwarded_for=defaults.trust_forwarded_for,
        shutdown_drain_deadline=args.shutdown_drain_deadline,
        smtp_host=defaults.smtp_host,
        smtp_port=defaults.smtp_port,
        smtp_username=defaults.smtp_username,
        smtp_password=defaults.smtp_password,
        smtp_sender=defaults.smtp_sender,
        cors_trusted_origins=args.cors_trusted_origins.split(),
        log_level=defaults.log_level,
        log_format=defaults.log_format,
    ), args.host


def main(argv: Optional[List[str]] = None) -> None:
    config, host = config_from_args(argv)
    configure_logging(config)
    app = create_app(config)
    logger.info("listening host=%s port=%d env=%s", host, config.port, config.env)
    # uvicorn closes the listener before running the lifespan shutdown that drains tasks.
    uvicorn.run(app, host=host, port=config.port, log_config=None)


if __name__ == "__main__":
    main()
