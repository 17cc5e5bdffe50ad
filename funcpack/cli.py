"""Thin CLI wrapper for funcpack.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from funcpack import __version__
from funcpack.config import get_settings, print_settings_json

app = typer.Typer(
    name="funcpack",
    help="funcpack - build and package serverless functions",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"funcpack version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Route library logging through Rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """funcpack - build and package serverless functions."""
    configure_logging("DEBUG" if verbose else get_settings().log_level)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print_json(print_settings_json(settings))
    else:
        minify = settings.minify_command or "(disabled)"
        install = settings.install_command or "(none)"
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Source:[/bold]")
        console.print(f"  Source directory:    {settings.source_dir}")
        console.print(f"  Source extension:    {settings.source_ext}")
        console.print(f"  Excluded prefixes:   {', '.join(settings.excluded_prefixes)}")
        console.print()
        console.print("[bold]Build:[/bold]")
        console.print(f"  Strategy:            {settings.build_strategy.value}")
        console.print(f"  Install command:     {escape(install)}")
        console.print(f"  Batch command:       {escape(settings.build_command)}")
        console.print(f"  Compile command:     {escape(settings.compile_command)}")
        console.print(f"  Minify command:      {escape(minify)}")
        console.print(f"  Target platform:     {settings.target_platform}")
        console.print(f"  Max builds:          {settings.max_concurrent_builds}")
        console.print(f"  Build timeout:       {settings.build_timeout}")
        console.print()
        console.print("[bold]Cache:[/bold]")
        console.print(f"  Cache path:          {settings.cache_path}")
        console.print(f"  Build cache key:     {settings.cache_key}")
        console.print(f"  Lock timeout:        {settings.cache_lock_timeout}")
        console.print()
        console.print(f"[bold]Log level:[/bold] {settings.log_level}")


functions_app = typer.Typer(help="Inspect the function inventory")
app.add_typer(functions_app, name="functions")


@functions_app.command("list")
def functions_list(
    source: Annotated[
        Path | None,
        typer.Option("--source", "-s", help="Source tree root"),
    ] = None,
    ext: Annotated[
        str | None,
        typer.Option("--ext", "-e", help="Function source extension"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List functions discovered in the source tree."""
    from funcpack.deploy.provisioner import handler_name
    from funcpack.functions.discovery import DiscoveryError, discover

    settings = get_settings()
    try:
        inventory = discover(
            source or settings.source_dir,
            ext or settings.source_ext,
            settings.excluded_prefixes,
        )
    except (DiscoveryError, ValueError) as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        output = [
            {
                "module": f.module,
                "function": f.function,
                "source_path": str(f.source_path),
                "handler": handler_name(f),
            }
            for f in inventory
        ]
        console.print_json(data=output)
        return

    if not inventory:
        console.print("[yellow]No functions found[/yellow]")
        return

    console.print(f"[bold]Found {len(inventory)} function(s):[/bold]")
    current_module: str | None = None
    for f in inventory:
        if f.module != current_module:
            current_module = f.module
            console.print(f"  [bold]{escape(f.module)}[/bold]")
        console.print(f"    [green]{escape(f.function)}[/green]  {f.source_path.name}")


build_app = typer.Typer(help="Build and package functions")
app.add_typer(build_app, name="build")


@build_app.command("run")
def build_run(
    source: Annotated[
        Path | None,
        typer.Option("--source", "-s", help="Source tree root"),
    ] = None,
    ext: Annotated[
        str | None,
        typer.Option("--ext", "-e", help="Function source extension"),
    ] = None,
    strategy: Annotated[
        str | None,
        typer.Option("--strategy", help="Build strategy: per-function or batch"),
    ] = None,
    context_path: Annotated[
        Path | None,
        typer.Option("--context", "-c", help="Deployment context file"),
    ] = None,
    plan_path: Annotated[
        Path | None,
        typer.Option("--plan", help="Write the deployment plan to this file"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Rebuild even if a cached build exists"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Discover, build and package every function.

    A successful build is cached in the working directory and replayed on
    later runs; use --force to rebuild. Functions that fail to build are
    reported with the tool's output and the rest are still packaged.
    """
    from funcpack.builds.cache import CacheWriteError
    from funcpack.builds.runner import BatchBuildError
    from funcpack.builds.service import run_pipeline
    from funcpack.deploy.context import ContextError, load_context
    from funcpack.deploy.provisioner import write_deployment_plan
    from funcpack.functions.discovery import DiscoveryError
    from funcpack.types import BuildStrategy

    settings = get_settings()

    build_strategy: BuildStrategy | None = None
    if strategy is not None:
        try:
            build_strategy = BuildStrategy(strategy)
        except ValueError:
            console.print(f"[red]Invalid strategy: {escape(strategy)}[/red]")
            console.print("Valid values: per-function, batch")
            raise typer.Exit(code=1) from None

    if plan_path is not None and context_path is None:
        console.print("[red]Error: --plan requires --context[/red]")
        raise typer.Exit(code=1)

    context = None
    if context_path is not None:
        try:
            context = load_context(context_path)
        except ContextError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            raise typer.Exit(code=1) from None
        if context.stack.build_command:
            settings = settings.model_copy(
                update={"build_command": context.stack.build_command}
            )

    try:
        result = run_pipeline(
            source_root=source,
            extension=ext,
            settings=settings,
            strategy=build_strategy,
            force=force,
        )
    except BatchBuildError as e:
        if json_output:
            console.print_json(data={"error": e.to_failure().model_dump(mode="json")})
        else:
            console.print(f"[red]Build failed ({e.stage.value}): {escape(str(e))}[/red]")
            if e.output:
                console.print(escape(e.output.rstrip()))
        raise typer.Exit(code=1) from None
    except (DiscoveryError, CacheWriteError, TimeoutError, ValueError) as e:
        if json_output:
            console.print_json(
                data={"error": {"code": getattr(e, "code", "error"), "message": str(e)}}
            )
        else:
            console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    if context is not None and plan_path is not None:
        write_deployment_plan(context, result, plan_path)

    if json_output:
        console.print_json(result.model_dump_json())
    else:
        hit_marker = " (cached build)" if result.cache_hit else ""
        console.print(
            f"[bold]Build Results ({result.strategy.value}){hit_marker}:[/bold]"
        )
        console.print(f"  Functions: {len(result.inventory)}")
        console.print(f"  [green]Packaged: {len(result.artifacts)}[/green]")
        if result.failures:
            console.print(f"  [red]Failed: {len(result.failures)}[/red]")
        console.print()

        for func in result.inventory:
            if func.key in result.artifacts:
                console.print(f"  [green]✓ {escape(func.key)}[/green]")
                console.print(f"      {escape(result.artifacts[func.key])}")
        for failure in result.failures:
            console.print(
                f"  [red]✗ {escape(failure.key)} ({failure.stage.value})[/red]"
            )
            console.print(f"      Error: {escape(failure.message)}")
            if failure.diagnostic:
                for line in failure.diagnostic.rstrip().splitlines():
                    console.print(f"      {escape(line)}")

        if plan_path is not None:
            console.print()
            console.print(f"Deployment plan written to {plan_path}")

    if result.failures:
        raise typer.Exit(code=1)


cache_app = typer.Typer(help="Inspect the operation cache")
app.add_typer(cache_app, name="cache")


@cache_app.command("show")
def cache_show(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show cached operation keys."""
    from funcpack.builds.service import cache_from_settings

    cache = cache_from_settings(get_settings())
    data = cache.read()

    if json_output:
        console.print_json(data=data)
        return

    console.print(f"[bold]Cache store:[/bold] {cache.path}")
    if not data:
        console.print("[yellow]No cached operations[/yellow]")
        return
    for key in sorted(data):
        console.print(f"  [green]{escape(key)}[/green]")


@cache_app.command("clear")
def cache_clear(
    key: Annotated[
        str | None,
        typer.Option("--key", "-k", help="Remove only this key"),
    ] = None,
) -> None:
    """Delete the cache store, or a single key."""
    from funcpack.builds.service import cache_from_settings

    cache = cache_from_settings(get_settings())
    if key is not None:
        if cache.forget(key):
            console.print(f"Removed cache entry: {escape(key)}")
        else:
            console.print(f"[yellow]No cache entry: {escape(key)}[/yellow]")
        return

    if cache.clear():
        console.print(f"Deleted cache store: {cache.path}")
    else:
        console.print("[yellow]No cache store to delete[/yellow]")


if __name__ == "__main__":
    app()
