#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Raw command line handling.

shed forwards most of its command line verbatim to docker compose or to a
program inside a container. Only the flags in an ``OptionRegistry`` belong
to shed; every other token, including options shed has never heard of, is
payload for the wrapped tool.
"""

import logging
from typing import Any, Iterable, Iterator, Optional, Sequence, Tuple, Union

from .models import OptionSpec

logger = logging.getLogger(__name__)

FLAG_PREFIX = "-"


def _takes_optional_value(token: Optional[str]) -> bool:
    """Whether the token after an optional-value flag is that flag's value"""
    if not token:
        return False
    return token == FLAG_PREFIX or token[0] != FLAG_PREFIX


class OptionRegistry:
    """Known options, looked up by exact flag string"""

    def __init__(self, specs: Iterable[OptionSpec] = ()):
        self._specs: list[OptionSpec] = []
        self._by_flag: dict[str, OptionSpec] = {}
        for spec in specs:
            self.add(spec)

    def add(self, spec: OptionSpec) -> None:
        for flag in spec.flags:
            if flag in self._by_flag:
                raise ValueError(f"Duplicate flag: {flag}")
        self._specs.append(spec)
        for flag in spec.flags:
            self._by_flag[flag] = spec

    def option_for(self, token: str) -> Optional[OptionSpec]:
        return self._by_flag.get(token)

    def walk(
        self, tokens: Sequence[str]
    ) -> Iterator[Tuple[int, Optional[OptionSpec], Optional[str]]]:
        """Yield ``(index, spec, value)`` for every position of ``tokens``.

        ``spec`` is None for tokens that are not ours. Tokens consumed as
        option values are not yielded on their own.
        """
        i = 0
        length = len(tokens)
        while i < length:
            token = tokens[i]
            spec = self.option_for(token)
            if spec is None:
                yield i, None, None
                i += 1
            elif spec.arity == "required":
                # A trailing flag still "consumes" the missing value
                value = tokens[i + 1] if i + 1 < length else None
                yield i, spec, value
                i += 2
            elif spec.arity == "optional":
                following = tokens[i + 1] if i + 1 < length else None
                if _takes_optional_value(following):
                    yield i, spec, following
                    i += 2
                else:
                    yield i, spec, spec.flag_value
                    i += 1
            else:
                yield i, spec, None
                i += 1

    def values(self, tokens: Sequence[str]) -> dict[str, Any]:
        """Values of the options present in ``tokens``, keyed by dest.

        The last occurrence of an option wins. Boolean options map to True.
        """
        found: dict[str, Any] = {}
        for _, spec, value in self.walk(tokens):
            if spec is None:
                continue
            if spec.arity == "boolean":
                found[spec.dest] = True
            elif value is None:
                if spec.arity == "required":
                    logger.warning(
                        "Option %s expects a value, ignoring it", spec.flags[0]
                    )
            else:
                found[spec.dest] = value
        return found

    def describe(self) -> list[Tuple[str, str]]:
        return [(spec.usage, spec.help) for spec in self._specs]


def raw_command_args(
    tokens: Sequence[str],
    registry: OptionRegistry,
    prepend: Union[str, Sequence[str], None] = None,
) -> list[str]:
    """Return ``tokens`` with every registered option and its value removed.

    ``prepend`` is placed first in the result; a single string counts as a
    one-element list. Unregistered tokens keep their relative order.
    """
    if prepend is None:
        args: list[str] = []
    elif isinstance(prepend, str):
        args = [prepend]
    else:
        args = list(prepend)

    for i, spec, _ in registry.walk(tokens):
        if spec is None:
            args.append(tokens[i])

    return args


def split_command(
    tokens: Sequence[str], registry: OptionRegistry
) -> Tuple[Optional[str], list[str]]:
    """Find the subcommand, the first token that is not one of our options.

    Returns the subcommand (None when there is none) and ``tokens`` with
    that single position removed.
    """
    for i, spec, _ in registry.walk(tokens):
        if spec is None:
            return tokens[i], [*tokens[:i], *tokens[i + 1 :]]
    return None, list(tokens)
