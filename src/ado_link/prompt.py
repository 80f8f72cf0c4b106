"""Interactive prompts on standard input."""

from __future__ import annotations

import getpass
from collections.abc import Callable

from ado_link.config import mask_secret


def read_input(
    message: str,
    default: str = "",
    *,
    secret: bool = False,
    input_fn: Callable[[str], str] | None = None,
) -> str:
    """Prompt until a value is available.

    An empty answer keeps `default`; without a default the question is asked
    again. End of input returns `default` (possibly empty).
    """

    reader = input_fn or (getpass.getpass if secret else input)
    shown = mask_secret(default) if secret else default
    question = f"{message} [{shown}]: " if default else f"{message}: "

    while True:
        try:
            answer = reader(question).strip()
        except EOFError:
            return default
        if answer:
            return answer
        if default:
            return default
