"""Entry point for running the API server as a module.

Usage:
    python -m stepflow.api
    python -m stepflow.api --host 0.0.0.0 --port 8080 --engine-config engine.yaml
"""

import argparse
import sys
from pathlib import Path

import uvicorn

from stepflow.api.server import create_app
from stepflow.config import ApiConfig, EngineConfig
from stepflow.exceptions import ConfigError
from stepflow.pipeline.runner import PipelineRunner


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m stepflow.api",
        description="stepflow pipeline execution API",
    )
    parser.add_argument("--host", help="Bind address (env: STEPFLOW_API_HOST)")
    parser.add_argument("--port", type=int, help="Bind port (env: STEPFLOW_API_PORT)")
    parser.add_argument(
        "--engine-config",
        type=Path,
        help="Engine config YAML (latencies, timeouts, worker count)",
    )
    parser.add_argument(
        "--no-samples",
        action="store_true",
        help="Start with an empty pipeline registry",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose uvicorn logging")
    return parser


def main() -> int:
    """Serve the stepflow HTTP API until interrupted."""
    args = _build_parser().parse_args()

    api_config = ApiConfig()
    if args.host:
        api_config.host = args.host
    if args.port:
        api_config.port = args.port
    api_config.debug = api_config.debug or args.debug

    try:
        engine_config = EngineConfig.load(args.engine_config) if args.engine_config else EngineConfig()
    except ConfigError as e:
        print(f"Invalid engine config: {e}", file=sys.stderr)
        return 1
    if args.no_samples:
        engine_config.load_samples = False

    runner = PipelineRunner.from_config(engine_config)
    print(f"stepflow API on http://{api_config.host}:{api_config.port}/api")
    print(f"   Pipelines loaded: {len(runner.registry.list_pipelines())}")

    uvicorn.run(
        create_app(api_config, runner=runner),
        host=api_config.host,
        port=api_config.port,
        log_level="debug" if api_config.debug else "info",
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
