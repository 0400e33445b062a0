from __future__ import annotations
from pathlib import Path
from typing import Any, List, Optional
import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .bootstrap import build_app
from .core.chat_session import ChatSession
from .core.errors import ChatError, TransportError, UnparseableImage
from .providers.catalog import known_models
from .providers.images import image_to_data_uri
from .providers.ollama_adapter import OllamaClient
from .storage.config_store import DEFAULTS, SECRET_KEYS, Plugin

app = typer.Typer(add_completion=False, help="Cordex: chat with local or cloud LLMs.")
config_app = typer.Typer(help="Read and edit persisted settings.")
plugins_app = typer.Typer(help="Manage installed plugin metadata.")
app.add_typer(config_app, name="config")
app.add_typer(plugins_app, name="plugins")

console = Console(highlight=False)

DEFAULT_CONFIG = Path("config/default.yaml")
CONFIG_OPT = typer.Option(DEFAULT_CONFIG, "--config", "-c", help="Application settings YAML.")

HELP = "Commands: /help, /id, /image PATH, /exit, /quit"


def _store(config: Path):
    return build_app(config, with_transcript=False)["store"]


def _coerce(key: str, value: str) -> Any:
    # Booleans and numbers keep their type; everything else (keys, URLs, model ids) stays a string
    default = DEFAULTS.get(key)
    if isinstance(default, (bool, int)):
        return yaml.safe_load(value)
    return value


@app.command()
def chat(config: Path = CONFIG_OPT):
    """Interactive chat with the selected provider."""
    ctx = build_app(config)
    cfg = ctx["cfg"]
    adapter = ctx["adapter"]
    transcript = ctx["transcript"]
    session = ChatSession(adapter=adapter, transcript=transcript)

    use_stream = bool((cfg.get("runtime") or {}).get("stream", True))
    provider, model = adapter.selection()
    console.print(f"Cordex chat ({provider.value} / {model}). Type /help for commands. Ctrl+C to quit.")

    pending_images: List[str] = []
    while True:
        try:
            user_input = input("cordex> ").strip()
        except (EOFError, KeyboardInterrupt):
            console.print("\nBye.")
            return

        if not user_input:
            continue

        if user_input in ("/exit", "/quit"):
            console.print("Bye.")
            return

        if user_input == "/help":
            console.print(HELP)
            continue

        if user_input == "/id":
            console.print(transcript.session_id)
            continue

        if user_input.startswith("/image"):
            path = Path(user_input[len("/image"):].strip()).expanduser()
            try:
                pending_images.append(image_to_data_uri(path))
                console.print(f"[dim]attached {path.name} to the next message[/dim]")
            except (OSError, UnparseableImage) as e:
                console.print(f"[red]\\[image] {escape(str(e))}[/red]")
            continue

        images, pending_images = pending_images, []
        try:
            if use_stream:
                gen = session.run_turn_stream(user_input, images=images)
                try:
                    for piece in gen:
                        print(piece, end="", flush=True)
                    print("")
                except KeyboardInterrupt:
                    # Closing records the partial reply and stops the provider stream
                    gen.close()
                    console.print("\n[yellow]\\[stream interrupted][/yellow]")
            else:
                console.print(session.run_turn(user_input, images=images), markup=False)
        except ChatError as e:
            console.print(f"\n[red]\\[error] {escape(str(e))}[/red]")


@app.command()
def models(
    provider: Optional[str] = typer.Argument(None, help="Provider to list (defaults to the selected one)."),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Ollama server URL override."),
    config: Path = CONFIG_OPT,
):
    """List models for a provider (live from the server for Ollama)."""
    store = _store(config)
    name = (provider or store.get("selectedProvider") or "ollama").lower()

    if name == "ollama":
        url = base_url or store.get("ollamaBaseUrl")
        if not url:
            console.print("[red]Ollama server URL not configured (ollamaBaseUrl).[/red]")
            raise typer.Exit(code=1)
        client = OllamaClient(base_url=url, timeout=10.0)
        try:
            ids = [(m.get("name", ""), m.get("name", "")) for m in client.list_models()]
        except TransportError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            raise typer.Exit(code=1)
        finally:
            client.close()
    else:
        ids = known_models(name)

    if not ids:
        console.print(f"No models known for '{name}'.")
        return
    table = Table("id", "name", title=name)
    for model_id, label in ids:
        table.add_row(model_id, label)
    console.print(table)


@app.command()
def serve(
    config: Path = CONFIG_OPT,
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(8000, help="Bind port."),
    reload: bool = typer.Option(False, help="Auto-reload on code changes."),
):
    """Run the HTTP API."""
    from .web.app import run
    run(config=config, host=host, port=port, reload=reload)


# ----- config -----

@config_app.command("show")
def config_show(config: Path = CONFIG_OPT):
    store = _store(config)
    table = Table("key", "value")
    for key, value in store.all(masked=True).items():
        if key == "plugins":
            value = f"{len(value or [])} plugin(s)"
        table.add_row(key, str(value))
    console.print(table)


@config_app.command("get")
def config_get(key: str, config: Path = CONFIG_OPT):
    value = _store(config).get(key)
    if key in SECRET_KEYS and value:
        value = "(set)"
    console.print("" if value is None else str(value))


@config_app.command("set")
def config_set(key: str, value: str, config: Path = CONFIG_OPT):
    _store(config).set(key, _coerce(key, value))
    console.print(f"{key} updated.")


# ----- plugins -----

@plugins_app.command("list")
def plugins_list(config: Path = CONFIG_OPT):
    plugins = _store(config).plugins()
    if not plugins:
        console.print("No plugins installed.")
        return
    table = Table("id", "name", "version", "enabled", "author")
    for p in plugins:
        table.add_row(p.id, p.name, p.version, "yes" if p.enabled else "no", p.author or "")
    console.print(table)


@plugins_app.command("add")
def plugins_add(
    plugin_id: str = typer.Argument(..., metavar="ID"),
    name: str = typer.Option(..., help="Display name."),
    version: str = typer.Option("0.1.0", help="Plugin version."),
    author: Optional[str] = typer.Option(None),
    description: Optional[str] = typer.Option(None),
    disabled: bool = typer.Option(False, help="Install disabled."),
    config: Path = CONFIG_OPT,
):
    plugin = Plugin(id=plugin_id, name=name, version=version, enabled=not disabled,
                    author=author, description=description)
    _store(config).add_plugin(plugin)
    console.print(f"Plugin '{plugin_id}' saved.")


@plugins_app.command("remove")
def plugins_remove(plugin_id: str = typer.Argument(..., metavar="ID"), config: Path = CONFIG_OPT):
    _store(config).remove_plugin(plugin_id)
    console.print(f"Plugin '{plugin_id}' removed.")


@plugins_app.command("toggle")
def plugins_toggle(plugin_id: str = typer.Argument(..., metavar="ID"), config: Path = CONFIG_OPT):
    plugin = _store(config).toggle_plugin(plugin_id)
    if plugin is None:
        console.print(f"[red]No plugin with id '{plugin_id}'.[/red]")
        raise typer.Exit(code=1)
    console.print(f"Plugin '{plugin_id}' {'enabled' if plugin.enabled else 'disabled'}.")
