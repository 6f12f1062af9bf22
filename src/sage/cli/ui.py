"""
Terminal UI utilities using Rich.

Provides:
- Execution output rendering (stdout, Out[n] results, tracebacks)
- Welcome, help and namespace tables
"""

from typing import Iterable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sage.kernel.protocol import (
    CompletionItem,
    ErrorOutput,
    ExecutionResult,
    KernelInfo,
    ResultOutput,
    StdoutOutput,
)

# Global console instance
console = Console()


def show_welcome(info: KernelInfo, target: Optional[Console] = None):
    """Print the welcome panel."""
    out = target or console
    welcome_text = (
        f"[bold white]Sage[/bold white] - Python console\n"
        f"[ansibrightblack]Kernel: {info.display_name} ({info.python_path})[/ansibrightblack]"
    )
    out.print()
    out.print(Panel(welcome_text, border_style="cyan", padding=(0, 1)))
    out.print("[ansibrightblack]Type /help for commands. Esc+Enter inserts a newline.[/ansibrightblack]")
    out.print()


def show_help(target: Optional[Console] = None):
    out = target or console
    table = Table(show_header=True, header_style="cyan", border_style="cyan")
    table.add_column("Command", style="cyan")
    table.add_column("Description")

    table.add_row("/help", "Show this help message")
    table.add_row("/exit, /quit", "Exit Sage")
    table.add_row("/restart", "Restart the kernel (clears all variables)")
    table.add_row("/clear", "Clear the screen")
    table.add_row("/vars", "List variables in the kernel namespace")

    out.print()
    out.print(table)
    out.print()
    out.print("[cyan]Completion:[/cyan]")
    out.print("  Tab completes names from the live namespace")
    out.print("  Inside [dim]db.sql(\"...\")[/dim] it completes SQL keywords, tables and columns")
    out.print()


def render_result(result: ExecutionResult, target: Optional[Console] = None):
    """Print every output of an execution in order."""
    out = target or console

    for output in result.outputs:
        if isinstance(output, StdoutOutput):
            out.print(Text(output.text), end="" if output.text.endswith("\n") else "\n")
        elif isinstance(output, ResultOutput):
            out.print(
                Text.assemble((f"Out[{result.execution_count}]: ", "red bold"), output.text)
            )
        elif isinstance(output, ErrorOutput):
            render_error(output, out)


def render_error(error: ErrorOutput, target: Optional[Console] = None):
    out = target or console
    body = "\n".join(line for line in error.traceback if line) or f"{error.ename}: {error.evalue}"
    out.print(
        Panel(
            Text(body),
            title=f"[bold]{error.ename}[/bold]: {error.evalue}",
            title_align="left",
            border_style="red",
        )
    )


def show_variables(completions: Iterable[CompletionItem], target: Optional[Console] = None):
    """Table of top-level names (dotted member paths are skipped)."""
    out = target or console
    table = Table(show_header=True, header_style="cyan", border_style="cyan")
    table.add_column("Name", style="cyan")
    table.add_column("Type")

    rows = [item for item in completions if "." not in item.name]
    for item in rows:
        table.add_row(item.name, item.type)

    if rows:
        out.print(table)
    else:
        out.print("[dim]No variables defined[/dim]")


def show_error(message: str, target: Optional[Console] = None):
    out = target or console
    out.print(f"[red]✗ {message}[/red]")


def show_info(message: str, target: Optional[Console] = None):
    out = target or console
    out.print(f"[dim]{message}[/dim]")
