from pathlib import Path
from typing import TYPE_CHECKING, Optional

from click import Path as ClickPath
from click import group, option
from litestar.cli._utils import LitestarGroup  # pyright: ignore[reportPrivateImportUsage]

if TYPE_CHECKING:
    from litestar import Litestar


@group(cls=LitestarGroup, name="inertia")
def inertia_group() -> None:
    """Manage Inertia Tasks."""


@inertia_group.command(
    name="version",
    help="Print the current Inertia asset version.",
)
@option("--json", "as_json", type=bool, help="Print the version and SSR settings as JSON.", default=False, is_flag=True)
def inertia_version(app: "Litestar", as_json: "bool") -> None:
    """Print the asset version."""
    import msgspec
    from litestar.cli._utils import console  # pyright: ignore[reportPrivateImportUsage]
    from litestar.serialization import encode_json

    from litestar_inertia.plugin import InertiaPlugin

    plugin = app.plugins.get(InertiaPlugin)
    version = plugin.config.asset_version
    current = version.get() if version is not None else None
    if as_json:
        ssr_config = plugin.config.ssr_config
        payload = {
            "version": current,
            "per_request": version.per_request if version is not None else False,
            "ssr": None
            if ssr_config is None
            else {
                "url": ssr_config.url,
                "timeout": ssr_config.timeout,
                "script_path": str(ssr_config.script_path) if ssr_config.script_path is not None else None,
            },
        }
        console.print(msgspec.json.format(encode_json(payload), indent=2).decode(), markup=False)
        return
    if current is None:
        console.print("[yellow]No asset version configured.[/]")
        return
    console.print(current, markup=False)


@inertia_group.command(
    name="ssr",
    help="Run the Inertia SSR renderer in the foreground.",
)
@option(
    "--script",
    "script_path",
    type=ClickPath(dir_okay=False, path_type=Path),
    help="Server bundle to run. Defaults to InertiaSSRConfig.script_path.",
    default=None,
)
@option("--url", help="Address the renderer listens on. Defaults to InertiaSSRConfig.url.", type=str, default=None)
@option("--verbose", type=bool, help="Enable verbose output.", default=False, is_flag=True)
def inertia_ssr(app: "Litestar", script_path: "Optional[Path]", url: "Optional[str]", verbose: "bool") -> None:
    """Run the SSR renderer until interrupted."""
    import threading

    from litestar.cli._utils import console  # pyright: ignore[reportPrivateImportUsage]
    from rich.table import Table

    from litestar_inertia.config import InertiaSSRConfig
    from litestar_inertia.exceptions import ProcessError
    from litestar_inertia.plugin import InertiaPlugin
    from litestar_inertia.process import SSRProcess

    if verbose:
        app.debug = True
    plugin = app.plugins.get(InertiaPlugin)
    ssr_config = plugin.config.ssr_config or InertiaSSRConfig()
    script = script_path or ssr_config.script_path
    if script is None:
        console.print("[red]No SSR script configured. Pass --script or set InertiaSSRConfig.script_path.[/]")
        return

    console.rule("[yellow]Starting Inertia SSR renderer[/]", align="left")
    process = SSRProcess(ssr_config.runtime, shutdown_timeout=ssr_config.shutdown_timeout)
    try:
        handle = process.start(script, url or ssr_config.url)
    except ProcessError as e:
        console.print(f"[bold red] Failed to start the SSR renderer: {e!s}[/]")
        return

    table = Table(show_header=False, box=None)
    table.add_row("[bold]Script[/]", str(script))
    table.add_row("[bold]URL[/]", handle.url)
    table.add_row("[bold]PID[/]", str(handle.pid))
    console.print(table)
    console.print("[bold green] SSR renderer running. Press Ctrl+C to stop.[/]")
    try:
        stop = threading.Event()
        while process.is_running(handle):
            stop.wait(0.5)
    except KeyboardInterrupt:
        pass
    finally:
        process.stop(handle)
        console.print("[yellow]SSR renderer stopped.[/]")
