"""Watch mode: re-diff whenever the new file changes on disk."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any, Callable, Optional

import typer
from rich.console import Console
from rich.markup import escape
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from . import config_manager
from .parser import ParseError
from .report_export import build_tree
from .session import DiffSession

console = Console()


class SourceChangeHandler:
    """Debounces file system events for one watched file.

    The first event runs at once. Events inside the debounce window schedule
    one trailing run at the end of the window so the last save is never lost.
    """

    def __init__(
        self,
        target: Path,
        on_change: Callable[[Path], None],
        debounce_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: Callable[..., Any] = threading.Timer,
    ):
        self.target = target.resolve()
        self.on_change = on_change
        self.debounce_seconds = debounce_seconds
        self.clock = clock
        self.timer_factory = timer_factory
        self.last_run: Optional[float] = None
        self._pending: Optional[Any] = None
        self._lock = threading.Lock()

    def dispatch(self, event) -> bool:
        """Handle one event; return True if it triggered an immediate re-diff."""
        if event.is_directory:
            return False
        paths = [getattr(event, "src_path", None), getattr(event, "dest_path", None)]
        if not any(p and Path(p).resolve() == self.target for p in paths):
            return False

        with self._lock:
            now = self.clock()
            if self.last_run is not None and now - self.last_run < self.debounce_seconds:
                if self._pending is None:
                    delay = self.last_run + self.debounce_seconds - now
                    self._pending = self.timer_factory(delay, self._fire)
                    self._pending.daemon = True
                    self._pending.start()
                return False
            self._cancel_pending()
            self.last_run = now
        self.on_change(self.target)
        return True

    def cancel(self) -> None:
        """Drop a scheduled trailing run."""
        with self._lock:
            self._cancel_pending()

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _fire(self) -> None:
        with self._lock:
            self._pending = None
            self.last_run = self.clock()
        self.on_change(self.target)


def _show(session: DiffSession, old_file: Path, new_file: Path) -> None:
    try:
        result = session.update(
            old_file.read_text(encoding="utf-8"),
            new_file.read_text(encoding="utf-8"),
        )
    except ParseError as exc:
        console.print(f"[red]✗ Parsing error:[/red] {escape(str(exc))}", highlight=False)
        return
    console.print(build_tree(result.report))


def watch(
    old_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Baseline version."),
    new_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File being edited."),
    interval: Optional[float] = typer.Option(None, "--interval", "-i", help="Debounce interval in seconds."),
    ecma_version: Optional[str] = typer.Option(None, "--ecma-version", help="ECMAScript edition or 'latest'."),
    source_type: Optional[str] = typer.Option(None, "--source-type", help="module or script."),
):
    """👀 Re-diff NEW_FILE against OLD_FILE on every save.

    Example:
      astdiff watch app.v1.js app.js
      astdiff watch app.v1.js app.js --interval 3
    """
    try:
        options = config_manager.parser_options(ecma_version, source_type)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    debounce = interval if interval is not None else config_manager.watch_debounce()

    def annotate(side: str, error: ParseError) -> None:
        name = old_file.name if side == "a" else new_file.name
        console.print(f"[red]●[/red] {name}:{error.line}:{error.column} {escape(error.message)}", highlight=False)

    session = DiffSession(options, annotate=annotate)
    _show(session, old_file, new_file)

    handler = SourceChangeHandler(
        new_file,
        lambda _path: _show(session, old_file, new_file),
        debounce_seconds=debounce,
    )

    class WatchdogAdapter(FileSystemEventHandler):
        def on_modified(self, event):
            handler.dispatch(event)

        def on_created(self, event):
            handler.dispatch(event)

        def on_moved(self, event):
            handler.dispatch(event)

    observer = Observer()
    observer.schedule(WatchdogAdapter(), str(new_file.resolve().parent), recursive=False)
    observer.start()

    console.print(f"\n[bold green]👀 Watching[/bold green] [cyan]{new_file}[/cyan] for changes...")
    console.print(f"[dim]  Debounce: {debounce}s\n  Press Ctrl+C to stop[/dim]\n")

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        observer.stop()
        handler.cancel()
        console.print("\n[yellow]Stopped watching.[/yellow]")

    observer.join()
