"""
Command-line interface for the workload idler owner resolver.

This module provides a CLI to inspect owner chains of running workloads and
the scale target registry, and to validate resolver configuration files.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import typer
import yaml
from prometheus_client import REGISTRY, write_to_textfile
from pydantic import ValidationError

from .controllers.owner_fetcher import OwnerFetcher, with_deadline
from .models.config import ResolverConfiguration
from .models.resources import GroupVersionKind, OwnerChain
from .utils.kubernetes_client import (
    KubernetesDiscoveryClient,
    KubernetesResourceAccessor,
    load_kubernetes_configuration,
)


app = typer.Typer(
    name="workload-idler",
    help="Owner chain resolution for the workload idler",
    no_args_is_help=True
)

logger = structlog.get_logger()


def load_configuration(config_path: Optional[str]) -> ResolverConfiguration:
    """
    Load and validate configuration from file.

    Args:
        config_path: Path to configuration file, None for defaults

    Returns:
        Validated configuration object

    Raises:
        typer.Exit: If configuration is invalid
    """
    if config_path is None:
        return ResolverConfiguration()

    config_file = Path(config_path)
    if not config_file.exists():
        typer.echo(f"Error: Configuration file not found: {config_path}", err=True)
        raise typer.Exit(1)

    try:
        with open(config_file, "r") as f:
            config_data = yaml.safe_load(f) or {}
        return ResolverConfiguration(**config_data)

    except ValidationError as e:
        typer.echo("Configuration validation error:", err=True)
        for error in e.errors():
            typer.echo(f"  {error['loc']}: {error['msg']}", err=True)
        raise typer.Exit(1)
    except (OSError, yaml.YAMLError, TypeError) as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        raise typer.Exit(1)


def setup_logging(log_level: str, log_format: str = "json") -> None:
    """Setup structured logging with specified level and format."""
    logging.basicConfig(level=getattr(logging, log_level.upper()))

    renderer: Any = structlog.processors.JSONRenderer()
    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def build_fetcher(configuration: ResolverConfiguration) -> OwnerFetcher:
    """Build an owner fetcher talking to the configured cluster."""
    load_kubernetes_configuration(logger)
    return OwnerFetcher.from_configuration(
        configuration,
        KubernetesDiscoveryClient(request_timeout=configuration.request_timeout),
        KubernetesResourceAccessor(request_timeout=configuration.request_timeout),
    )


def export_metrics(path: str) -> None:
    """
    Write the resolver metrics in the Prometheus text format.

    Meant for the node exporter textfile collector, since a single command
    run exits before a scrape could happen.
    """
    try:
        write_to_textfile(path, REGISTRY)
    except OSError as e:
        logger.warning("Failed to write metrics", path=path, error=str(e))


def render_chain(chain: OwnerChain, output: str) -> str:
    """Render an owner chain as a table or JSON document."""
    entries = [entry.to_summary() for entry in chain.owners or []]

    if output == "json":
        document: Dict[str, Any] = {"owners": entries}
        if chain.error is not None:
            document["error"] = str(chain.error)
        return json.dumps(document, indent=2)

    if not entries:
        return "No owners"
    lines = [f"{'DEPTH':<6}{'KIND':<34}{'NAMESPACE':<24}NAME"]
    for depth, entry in enumerate(entries):
        lines.append(
            f"{depth:<6}{entry['kind']:<34}{entry['namespace'] or '-':<24}{entry['name']}"
        )
    return "\n".join(lines)


@app.command()
def owners(
    namespace: Optional[str] = typer.Option(
        None,
        "--namespace", "-n",
        help="Namespace of the object"
    ),
    pod: Optional[str] = typer.Option(
        None,
        "--pod", "-p",
        help="Pod name (shortcut for --api-version v1 --kind Pod --name)"
    ),
    api_version: str = typer.Option(
        "v1",
        "--api-version",
        help="API version of the starting object"
    ),
    kind: str = typer.Option(
        "Pod",
        "--kind",
        help="Kind of the starting object"
    ),
    name: Optional[str] = typer.Option(
        None,
        "--name",
        help="Name of the starting object"
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config", "-c",
        help="Path to configuration file",
        envvar="WORKLOAD_IDLER_CONFIG"
    ),
    output: str = typer.Option(
        "table",
        "--output", "-o",
        help="Output format (table or json)"
    )
) -> None:
    """
    Resolve and print the owner chain of an object.

    Ancestors resolved before a failure are printed before the error is
    reported.
    """
    object_name = pod or name
    if not object_name:
        typer.echo("Error: either --pod or --name is required", err=True)
        raise typer.Exit(2)

    configuration = load_configuration(config)
    setup_logging(configuration.log_level, configuration.log_format)

    try:
        fetcher = build_fetcher(configuration)
        chain = asyncio.run(
            _resolve(fetcher, api_version, kind, namespace, object_name,
                     configuration.resolution_timeout)
        )
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    finally:
        if configuration.metrics_textfile:
            export_metrics(configuration.metrics_textfile)

    typer.echo(render_chain(chain, output))

    scale_targets = fetcher.scale_targets(chain)
    if scale_targets and output != "json":
        nearest = scale_targets[0]
        typer.echo(
            f"Nearest scale target: {nearest.gvk.kind}/{nearest.name} "
            f"({fetcher.registry.strategy_for(nearest.gvk).value})"
        )

    if chain.error is not None:
        typer.echo(f"Error: {chain.error}", err=True)
        raise typer.Exit(1)


@app.command()
def targets(
    config: Optional[str] = typer.Option(
        None,
        "--config", "-c",
        help="Path to configuration file",
        envvar="WORKLOAD_IDLER_CONFIG"
    )
) -> None:
    """List the kinds the idler can pause and how each one is paused."""
    configuration = load_configuration(config)
    registry = configuration.build_registry()

    typer.echo(f"{'KIND':<34}{'API VERSION':<30}{'RESOURCE':<34}STRATEGY")
    for target in registry:
        typer.echo(
            f"{target.gvk.kind:<34}{target.gvk.group_version:<30}"
            f"{target.gvr.resource:<34}{target.strategy.value}"
        )


@app.command()
def validate(
    config: str = typer.Option(
        "config.yaml",
        "--config", "-c",
        help="Path to configuration file"
    )
) -> None:
    """Validate a configuration file and print its effective settings."""
    configuration = load_configuration(config)

    typer.echo("Configuration validation successful")
    typer.echo(f"Max depth: {configuration.max_depth}")
    typer.echo(f"Request timeout: {configuration.request_timeout}s")
    typer.echo(f"Scale targets: {len(configuration.build_registry())}")
    priority = ", ".join(gk.kind for gk in configuration.build_owner_priority())
    typer.echo(f"Owner priority: {priority}")


@app.command()
def generate_config(
    output: str = typer.Option(
        "config.yaml",
        "--output", "-o",
        help="Output configuration file path"
    ),
    format: str = typer.Option(
        "yaml",
        "--format", "-f",
        help="Configuration format (yaml or json)"
    )
) -> None:
    """Generate a sample configuration file with the built-in defaults."""
    sample_config = ResolverConfiguration(
        intermediate_kinds=[{"group": "toolchain.dev.openshift.com", "kind": "Idler"}],
    ).model_dump(mode="json")

    output_path = Path(output)
    try:
        with open(output_path, "w") as f:
            if format.lower() == "json":
                json.dump(sample_config, f, indent=2)
            else:
                yaml.safe_dump(sample_config, f, default_flow_style=False, indent=2, sort_keys=False)
    except OSError as e:
        typer.echo(f"Failed to generate configuration: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Sample configuration generated: {output}")


async def _resolve(fetcher: OwnerFetcher,
                   api_version: str,
                   kind: str,
                   namespace: Optional[str],
                   name: str,
                   timeout: Optional[float]) -> OwnerChain:
    """
    Fetch the starting object and resolve its owners.

    The timeout covers the whole command: the starting object lookup and
    the owner chain share one deadline.
    """
    loop = asyncio.get_running_loop()
    deadline = None if timeout is None else loop.time() + timeout

    gvk = GroupVersionKind.from_api_version(api_version, kind)
    gvr, namespaced = await with_deadline(
        fetcher.cache.resolve_resource(gvk), deadline, f"resolving kind {gvk.kind}"
    )
    payload = await with_deadline(
        fetcher.accessor.get(gvr, namespace if namespaced else None, name),
        deadline,
        f"fetching {gvr.resource} {name}"
    )

    remaining = None if deadline is None else max(deadline - loop.time(), 0.0)
    return await fetcher.get_owners(payload, timeout=remaining)


def main() -> None:
    """Main entry point for the CLI application."""
    app()


if __name__ == "__main__":
    main()
