"""
Interactive console mode for Sage.

Reads code with prompt_toolkit, runs it in the kernel, renders the outputs
with Rich and refreshes autocomplete from the metadata each execution
harvests.
"""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.filters import completion_is_selected
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style
from rich.console import Console

from sage.cli import ui
from sage.cli.completer import KernelCompleter
from sage.completion.engine import AutocompleteEngine
from sage.config import Config
from sage.kernel.base import KernelConnectionError, KernelError
from sage.kernel.manager import KernelManager
from sage.kernel.protocol import ExecutionResult
from sage.utils.logger import LogSink, NullSink


# Color scheme
STYLE = Style.from_dict({
    'prompt-symbol': '#00d7ff bold',
    'prompt-count': 'ansibrightblack',

    # Completion menu styling (for autocomplete dropdown)
    'completion-menu': 'bg:#1a1a1a #ffffff',
    'completion-menu.completion': 'bg:#1a1a1a #e0e0e0',
    'completion-menu.completion.current': 'bg:#00d7ff #000000 bold',
    'completion-menu.meta': 'bg:#1a1a1a #808080',
    'completion-menu.meta.current': 'bg:#00d7ff #000000',
})


class InteractiveSession:
    """
    Manages an interactive console session.

    Features:
    - One long-lived kernel, restarted on demand or after a fatal error
    - Namespace-aware completion refreshed after every execution
    - Slash commands
    """

    def __init__(
        self,
        manager: KernelManager,
        config: Config,
        console: Optional[Console] = None,
        sink: Optional[LogSink] = None,
    ):
        """
        Initialize interactive session.

        Args:
            manager: Kernel manager owning the kernel
            config: Configuration
            console: Rich console (creates new if None)
            sink: Structured log sink
        """
        self.manager = manager
        self.config = config
        self.console = console or Console()
        self.sink = sink or NullSink()

        self.running = True
        self.start_time = datetime.now()
        self.last_result: Optional[ExecutionResult] = None

        self.commands = self._register_commands()
        self.engine = AutocompleteEngine(max_visible=config.dropdown_size, sink=self.sink)

        kb = KeyBindings()

        # Enter accepts the highlighted completion instead of submitting
        @kb.add('enter', filter=completion_is_selected)
        def _(event):
            buffer = event.current_buffer
            if buffer.complete_state:
                current_completion = buffer.complete_state.current_completion
                if current_completion:
                    buffer.apply_completion(current_completion)

        @kb.add('escape', 'enter')
        def _(event):
            """Insert a newline for multi-line input."""
            event.current_buffer.insert_text("\n")

        history_file = Path.home() / ".sage_history"
        self.prompt_session = PromptSession(
            history=FileHistory(str(history_file)),
            style=STYLE,
            completer=KernelCompleter(self.engine),
            complete_while_typing=True,
            key_bindings=kb,
        )

    def start(self):
        """Start the interactive loop."""
        if not self._ensure_kernel():
            return

        ui.show_welcome(self.manager.kernel.info, self.console)

        while self.running:
            try:
                code = self._get_input()

                if not code.strip():
                    continue

                if code.startswith('/'):
                    self._execute_command(code.strip())
                else:
                    self._execute_code(code)

            except KeyboardInterrupt:
                self.console.print("\n[dim]Use /exit to quit[/dim]")
                continue
            except EOFError:
                self._exit()
                break

        self.manager.shutdown()
        self._print_goodbye()

    def _get_input(self) -> str:
        kernel = self.manager.kernel
        count = kernel.execution_count + 1 if kernel else 1
        prompt_text = HTML(f'<prompt-count>[{count}]</prompt-count> <prompt-symbol>›</prompt-symbol> ')
        return self.prompt_session.prompt(prompt_text)

    def _ensure_kernel(self) -> bool:
        try:
            self.manager.start()
            return True
        except KernelConnectionError as e:
            ui.show_error(f"Could not start kernel: {e}", self.console)
            return False

    def _execute_code(self, code: str):
        if not self._ensure_kernel():
            return
        kernel = self.manager.kernel

        try:
            result = kernel.execute(code)
        except KeyboardInterrupt:
            kernel.interrupt()
            self.manager.shutdown()
            ui.show_error("Execution interrupted; the kernel was stopped", self.console)
            ui.show_info("Variables were lost. The next command starts a fresh kernel.", self.console)
            return
        except KernelError as e:
            self.manager.shutdown()
            ui.show_error(f"Kernel error: {e}", self.console)
            ui.show_info("The next command starts a fresh kernel.", self.console)
            return

        self.last_result = result
        self.engine.apply_result(result)
        ui.render_result(result, self.console)

    def _execute_command(self, cmd_input: str):
        parts = cmd_input.split()
        cmd_name = parts[0][1:]
        cmd_args = parts[1:]

        if cmd_name in self.commands:
            self.commands[cmd_name](cmd_args)
        else:
            ui.show_error(f"Unknown command: /{cmd_name}", self.console)
            self.console.print("[dim]Type /help for available commands[/dim]")

    def _register_commands(self) -> Dict:
        return {
            'help': self._cmd_help,
            'exit': self._cmd_exit,
            'quit': self._cmd_exit,
            'restart': self._cmd_restart,
            'clear': self._cmd_clear,
            'vars': self._cmd_vars,
        }

    # Command handlers

    def _cmd_help(self, args: List[str]):
        ui.show_help(self.console)

    def _cmd_exit(self, args: List[str]):
        self._exit()

    def _exit(self):
        self.running = False

    def _cmd_restart(self, args: List[str]):
        try:
            self.manager.restart()
        except KernelConnectionError as e:
            ui.show_error(f"Could not restart kernel: {e}", self.console)
            return
        self.last_result = None
        self.engine = self._reset_engine()
        ui.show_info("Kernel restarted", self.console)

    def _reset_engine(self) -> AutocompleteEngine:
        engine = AutocompleteEngine(max_visible=self.config.dropdown_size, sink=self.sink)
        self.prompt_session.completer = KernelCompleter(engine)
        return engine

    def _cmd_clear(self, args: List[str]):
        self.console.clear()

    def _cmd_vars(self, args: List[str]):
        if self.last_result is None:
            ui.show_info("Nothing executed yet", self.console)
            return
        ui.show_variables(self.last_result.completions, self.console)

    def _print_goodbye(self):
        duration = datetime.now() - self.start_time
        minutes = int(duration.total_seconds() / 60)
        seconds = int(duration.total_seconds() % 60)
        self.console.print()
        self.console.print(f"[dim]Session ended | {minutes}m {seconds}s[/dim]")
