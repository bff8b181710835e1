"""Main entry point for the Prometheus registry exporter."""
import argparse
import logging
import sys

from promexport.app import ExporterAPI
from promexport.config import Config, load_config
from promexport.registry import shared_registry


def setup_logging(log_level: str, log_format: str):
    """Setup logging configuration."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    if log_format == "json":
        fmt = '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}'
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    logging.basicConfig(
        level=level,
        format=fmt,
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Reduce noise from some libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main():
    """Main function."""
    parser = argparse.ArgumentParser(
        description="Prometheus Registry Exporter - Serve in-process metrics to Prometheus"
    )
    parser.add_argument(
        "--config",
        "-c",
        help="Path to configuration YAML file (defaults are used when omitted)"
    )

    args = parser.parse_args()

    try:
        config = load_config(args.config) if args.config else Config()
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.global_.log_level, config.global_.log_format)
    logger = logging.getLogger(__name__)

    logger.info(f"Configuration loaded from: {args.config or '<defaults>'}")
    logger.info(f"Serving registry '{config.export.registry}' on {config.server.path}")

    registry = shared_registry(config.export.registry)
    api = ExporterAPI(config, registry)

    try:
        api.run(host=config.server.host, port=config.server.port)
    except Exception as e:
        logger.error(f"Exporter API error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
