"""
Kernel-backed autocomplete for the console prompt.

Bridges prompt_toolkit's completion menu to the AutocompleteEngine, which
ranks names harvested from the running kernel.
"""

from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from sage.completion.context import parse_completion_request
from sage.completion.engine import AutocompleteEngine


class KernelCompleter(Completer):
    """
    Autocompletes Python names, method chains and SQL inside query strings.

    Shows the runtime type of harvested names as the completion meta.
    """

    def __init__(self, engine: AutocompleteEngine):
        """
        Initialize the kernel completer.

        Args:
            engine: Engine holding the latest harvested metadata
        """
        self.engine = engine

    def get_completions(self, document: Document, complete_event) -> Iterable[Completion]:
        """
        Generate completions for the word under the cursor.

        Args:
            document: Current prompt document
            complete_event: Completion event

        Yields:
            Completion objects in engine ranking order
        """
        request = parse_completion_request(
            document.text_before_cursor,
            full_text=document.text,
            cursor=document.cursor_position,
        )
        self.engine.update_with_context(request.base_callable, request.prefix, request.is_sql)

        if not self.engine.is_visible:
            return

        start_position = -len(request.prefix)
        for suggestion in self.engine.suggestions:
            yield Completion(
                text=suggestion,
                start_position=start_position,
                display_meta=self.engine.type_of(suggestion) or "",
            )
