"""CLI interface for stepflow."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any

import structlog
import typer
import yaml

from stepflow import __version__
from stepflow.config import ApiConfig, EngineConfig
from stepflow.exceptions import ConfigError, NotFoundError, NotReadyError, ValidationError
from stepflow.pipeline import Pipeline, PipelineRegistry, PipelineRunner, PipelineStatus


def configure_logging(level: int = logging.WARNING) -> None:
    """Configure structlog for CLI output on stderr."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


configure_logging()

logger = structlog.get_logger()

app = typer.Typer(
    name="stepflow",
    help="JSON-driven pipeline execution engine",
    no_args_is_help=True,
)

pipelines_app = typer.Typer(
    name="pipelines",
    help="Inspect pipeline definitions",
    no_args_is_help=True,
)

app.add_typer(pipelines_app)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"stepflow version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log engine progress to stderr."),
    ] = False,
) -> None:
    """stepflow - run JSON documents through typed pipeline steps."""
    if verbose:
        configure_logging(logging.INFO)


def _load_engine_config(path: Path | None) -> EngineConfig:
    if path is None:
        return EngineConfig()
    try:
        return EngineConfig.load(path)
    except ConfigError as e:
        typer.echo(f"Invalid config: {e}", err=True)
        raise typer.Exit(1) from e


def _load_pipeline_file(path: Path) -> Pipeline:
    try:
        return Pipeline.from_yaml(path.read_text())
    except (OSError, ValueError, yaml.YAMLError) as e:
        typer.echo(f"Invalid pipeline file: {e}", err=True)
        raise typer.Exit(1) from e


def _parse_input(raw: str | None) -> Any:
    """Parse the --input option: inline JSON, @file, or '-' for stdin."""
    if raw is None:
        return {}
    if raw == "-":
        text = sys.stdin.read()
    elif raw.startswith("@"):
        path = Path(raw[1:])
        if not path.exists():
            typer.echo(f"Input file not found: {path}", err=True)
            raise typer.Exit(1)
        text = path.read_text()
    else:
        text = raw
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        typer.echo(f"Input is not valid JSON: {e}", err=True)
        raise typer.Exit(1) from e


@app.command()
def run(
    pipeline_id: Annotated[
        str | None,
        typer.Argument(help="Pipeline ID (omit when using --file)"),
    ] = None,
    input_json: Annotated[
        str | None,
        typer.Option(
            "--input",
            "-i",
            help="Input JSON, @path to a JSON file, or - for stdin",
        ),
    ] = None,
    file: Annotated[
        Path | None,
        typer.Option(
            "--file",
            "-f",
            help="Run a pipeline defined in a YAML file",
            exists=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to engine config YAML",
            exists=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print the full execution record as JSON"),
    ] = False,
) -> None:
    """Run a pipeline against an input document."""
    engine_config = _load_engine_config(config)
    runner = PipelineRunner.from_config(engine_config)

    if file is not None:
        pipeline = _load_pipeline_file(file)
        try:
            pipeline = runner.registry.create_pipeline(pipeline)
        except ValidationError as e:
            typer.echo(f"Invalid pipeline: {e}", err=True)
            raise typer.Exit(1) from e
        pipeline_id = pipeline.id

    if not pipeline_id:
        typer.echo("Provide a pipeline ID or --file", err=True)
        raise typer.Exit(2)

    logger.info("Running pipeline", pipeline_id=pipeline_id, source=str(file or "registry"))
    try:
        execution = runner.execute(pipeline_id, _parse_input(input_json))
    except (NotFoundError, NotReadyError) as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1) from e

    if json_output:
        typer.echo(json.dumps(execution.to_dict(), indent=2))
    else:
        typer.echo(f"Execution: {execution.id}")
        typer.echo(f"Status: {execution.status.value}")
        typer.echo(f"Time: {execution.execution_time_ms} ms")
        typer.echo("")
        for i, result in enumerate(execution.step_results, 1):
            line = f"  {i}. {result.step_name} [{result.status.value}] {result.execution_time_ms} ms"
            if result.error_message:
                line += f" - {result.error_message}"
            typer.echo(line)
        typer.echo("")
        typer.echo("Output:")
        typer.echo(json.dumps(execution.output, indent=2))

    if execution.status != PipelineStatus.COMPLETED:
        raise typer.Exit(1)


@app.command()
def validate(
    file: Annotated[
        Path,
        typer.Argument(help="Pipeline YAML file", exists=True, dir_okay=False),
    ],
) -> None:
    """Check that a pipeline YAML file is a valid definition."""
    pipeline = _load_pipeline_file(file)
    try:
        PipelineRegistry().create_pipeline(pipeline)
    except ValidationError as e:
        typer.echo(f"Invalid pipeline: {e}", err=True)
        raise typer.Exit(1) from e
    typer.echo(f"Pipeline '{pipeline.id}' is valid ({len(pipeline.steps)} steps)")


@app.command()
def serve(
    host: Annotated[str | None, typer.Option(help="Host to bind")] = None,
    port: Annotated[int | None, typer.Option(help="Port to bind")] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to engine config YAML",
            exists=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ] = None,
) -> None:
    """Serve the HTTP API."""
    import uvicorn

    from stepflow.api import create_app

    api_config = ApiConfig()
    if host:
        api_config.host = host
    if port:
        api_config.port = port

    runner = PipelineRunner.from_config(_load_engine_config(config))
    typer.echo(f"Serving on http://{api_config.host}:{api_config.port}/api")
    uvicorn.run(
        create_app(api_config, runner=runner),
        host=api_config.host,
        port=api_config.port,
        log_level="debug" if api_config.debug else "info",
    )


@pipelines_app.command("list")
def pipelines_list(
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON",
        ),
    ] = False,
) -> None:
    """List available pipelines."""
    registry = PipelineRegistry.load()
    pipelines = sorted(registry.list_pipelines(), key=lambda p: p.id)

    if json_output:
        output = [
            {
                "id": p.id,
                "name": p.name,
                "description": p.description,
                "status": p.status.value,
                "step_count": len(p.steps),
            }
            for p in pipelines
        ]
        typer.echo(json.dumps(output, indent=2))
    else:
        typer.echo("Available pipelines:")
        typer.echo("")
        for p in pipelines:
            typer.echo(f"  {p.id:28} [{p.status.value}] {p.name}")
            if p.description:
                typer.echo(f"    {p.description}")
            typer.echo(f"    Steps: {len(p.steps)}")
            typer.echo("")


@pipelines_app.command("show")
def pipelines_show(
    pipeline_id: Annotated[
        str,
        typer.Argument(help="Pipeline ID to show"),
    ],
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON",
        ),
    ] = False,
) -> None:
    """Show details of a pipeline."""
    pipeline = PipelineRegistry.load().get_pipeline(pipeline_id)
    if pipeline is None:
        typer.echo(f"Pipeline not found: {pipeline_id}", err=True)
        raise typer.Exit(1)

    if json_output:
        typer.echo(pipeline.model_dump_json(indent=2))
        return

    typer.echo(f"Pipeline: {pipeline.id}")
    typer.echo(f"Name: {pipeline.name}")
    typer.echo(f"Status: {pipeline.status.value}")
    if pipeline.description:
        typer.echo(f"Description: {pipeline.description}")
    typer.echo("")
    typer.echo("Steps:")
    for i, step in enumerate(pipeline.steps, 1):
        typer.echo(f"  {i}. {step.id} - {step.name} ({step.step_type.value})")
        if step.operation:
            typer.echo(f"     Operation: {step.operation}")
        typer.echo(f"     Timeout: {step.timeout_seconds:g}s")


@pipelines_app.command("export")
def pipelines_export(
    pipeline_id: Annotated[
        str,
        typer.Argument(help="Pipeline ID to export"),
    ],
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Output file path (default: stdout)",
            file_okay=True,
            resolve_path=True,
        ),
    ] = None,
) -> None:
    """Export a pipeline to a YAML file."""
    pipeline = PipelineRegistry.load().get_pipeline(pipeline_id)
    if pipeline is None:
        typer.echo(f"Pipeline not found: {pipeline_id}", err=True)
        raise typer.Exit(1)

    yaml_content = pipeline.to_yaml()
    if output:
        output.write_text(yaml_content)
        typer.echo(f"Exported to: {output}")
    else:
        typer.echo(yaml_content)


if __name__ == "__main__":
    app()
