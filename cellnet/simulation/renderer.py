"""Rich terminal renderer for the cell network."""

from __future__ import annotations

import io
import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from cellnet.cells.entities import CellStatus

if TYPE_CHECKING:
    from cellnet.network import NetworkSnapshot
    from cellnet.simulation.scheduler import TickReport


def _make_console() -> Console:
    """Create a Rich Console that works on Windows (force UTF-8)."""
    if sys.platform == "win32" and hasattr(sys.stdout, "buffer"):
        utf8_stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", errors="replace")
        return Console(file=utf8_stdout, force_terminal=True)
    return Console()


STATUS_STYLE = {
    CellStatus.ACTIVE: "bold green",
    CellStatus.SLEEPING: "dim cyan",
}


class Renderer:
    """Renders network snapshots as Rich tables."""

    def __init__(self, console: Console | None = None, max_messages: int = 8):
        self.console = console or _make_console()
        self.max_messages = max_messages

    def header(self, snapshot: NetworkSnapshot) -> str:
        alive = sum(1 for c in snapshot.cells.values() if c.is_alive)
        dead = len(snapshot.cells) - alive
        sleeping = sum(
            1 for c in snapshot.cells.values() if c.is_alive and c.status == CellStatus.SLEEPING
        )
        purpose = f" | Purpose: {snapshot.purpose}" if snapshot.purpose else ""
        return (
            f"  cellnet | Tick {snapshot.tick_count:>5} | Alive: {alive} | "
            f"Sleeping: {sleeping} | Dead: {dead}{purpose}"
        )

    def cell_table(self, snapshot: NetworkSnapshot) -> Table:
        table = Table(title="Cells", expand=False)
        table.add_column("ID", style="bold")
        table.add_column("Expertise")
        table.add_column("Age", justify="right")
        table.add_column("Status")
        table.add_column("Position", justify="right")
        table.add_column("Likes", justify="right")
        table.add_column("Color")
        table.add_column("Last event")
        for cell in snapshot.cells.values():
            if cell.is_alive:
                status = f"[{STATUS_STYLE[cell.status]}]{cell.status.value}[/]"
            else:
                status = "[red]dead[/red]"
            last = cell.history[-1].text if cell.history else ""
            table.add_row(
                cell.id,
                cell.expertise,
                str(cell.age),
                status,
                f"({cell.position.x:.0f}, {cell.position.y:.0f})",
                str(len(cell.liked_cells)),
                cell.indicator_color or "",
                last[:48],
            )
        return table

    def message_table(self, snapshot: NetworkSnapshot) -> Table:
        table = Table(title="Messages", expand=False)
        table.add_column("From")
        table.add_column("To")
        table.add_column("Route")
        table.add_column("Content")
        for msg in snapshot.messages[-self.max_messages :]:
            route = " > ".join(msg.route) if msg.route else ""
            table.add_row(msg.source_id, msg.target_id, route, msg.content[:60])
        return table

    def render(self, snapshot: NetworkSnapshot, report: TickReport | None = None) -> None:
        """Clear the screen and draw one frame."""
        self.console.clear()
        self.console.print(self.header(snapshot))
        self.console.print(self.cell_table(snapshot))
        if snapshot.messages:
            self.console.print(self.message_table(snapshot))
        if report is not None:
            events = []
            if report.deaths:
                events.append(f"[red]died: {', '.join(report.deaths)}[/red]")
            if report.clones:
                events.append(
                    "[green]cloned: "
                    + ", ".join(f"{p}->{c}" for p, c in report.clones)
                    + "[/green]"
                )
            if report.slept:
                events.append(f"[cyan]slept: {', '.join(report.slept)}[/cyan]")
            if report.woke:
                events.append(f"[yellow]woke: {', '.join(report.woke)}[/yellow]")
            if events:
                self.console.print("  " + " | ".join(events))

    def render_summary(self, snapshot: NetworkSnapshot, total_messages: int = 0) -> None:
        self.console.print("\n  [bold cyan]cellnet: SIMULATION COMPLETE[/bold cyan]")
        self.console.print(f"  Ticks: {snapshot.tick_count}")
        alive = sum(1 for c in snapshot.cells.values() if c.is_alive)
        self.console.print(f"  Cells alive: {alive}")
        self.console.print(f"  Cells dead: {len(snapshot.cells) - alive}")
        self.console.print(f"  Total messages: {total_messages}")
        if snapshot.guidance:
            self.console.print(f"  Guidance: {snapshot.guidance}")
