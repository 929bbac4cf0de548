"""Conditional chain nodes driven by boolean matcher expressions.

An expression combines matcher tags with &&, ||, ! and parentheses; the
literals true and false are allowed, and a tag holding other characters
can be written in brackets, as in [my-tag].
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass

from mosdns.chain import (
    NOP_LOGGER,
    ChainNode,
    Matcher,
    QueryContext,
    exec_chain_node,
    last_node,
)

_Lookup = Callable[[str], Awaitable[bool]]

_TOKEN_RE = re.compile(r"&&|\|\||!|\(|\)|\[[^\]]*\]|[A-Za-z_][A-Za-z0-9_]*")


@dataclass(frozen=True)
class _Const:
    value: bool

    async def evaluate(self, lookup: _Lookup) -> bool:
        return self.value

    def names(self) -> Iterator[str]:
        return iter(())


@dataclass(frozen=True)
class _Var:
    name: str

    async def evaluate(self, lookup: _Lookup) -> bool:
        return await lookup(self.name)

    def names(self) -> Iterator[str]:
        yield self.name


@dataclass(frozen=True)
class _Not:
    operand: object

    async def evaluate(self, lookup: _Lookup) -> bool:
        return not await self.operand.evaluate(lookup)

    def names(self) -> Iterator[str]:
        yield from self.operand.names()


@dataclass(frozen=True)
class _And:
    left: object
    right: object

    async def evaluate(self, lookup: _Lookup) -> bool:
        return await self.left.evaluate(lookup) and await self.right.evaluate(lookup)

    def names(self) -> Iterator[str]:
        yield from self.left.names()
        yield from self.right.names()


@dataclass(frozen=True)
class _Or:
    left: object
    right: object

    async def evaluate(self, lookup: _Lookup) -> bool:
        return await self.left.evaluate(lookup) or await self.right.evaluate(lookup)

    def names(self) -> Iterator[str]:
        yield from self.left.names()
        yield from self.right.names()


def _tokenize(text: str) -> list[str]:
    tokens: list[str] = []
    pos = 0
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
            continue
        found = _TOKEN_RE.match(text, pos)
        if found is None:
            raise ValueError(f"invalid character {text[pos]!r} at position {pos}")
        tokens.append(found.group())
        pos = found.end()
    return tokens


class _Parser:
    def __init__(self, tokens: list[str]) -> None:
        self._tokens = tokens
        self._pos = 0

    def parse(self):
        if not self._tokens:
            raise ValueError("empty expression")
        node = self._or()
        if self._peek() is not None:
            raise ValueError(f"unexpected token {self._peek()!r}")
        return node

    def _peek(self) -> str | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _take(self) -> str:
        token = self._peek()
        if token is None:
            raise ValueError("unexpected end of expression")
        self._pos += 1
        return token

    def _or(self):
        node = self._and()
        while self._peek() == "||":
            self._pos += 1
            node = _Or(node, self._and())
        return node

    def _and(self):
        node = self._unary()
        while self._peek() == "&&":
            self._pos += 1
            node = _And(node, self._unary())
        return node

    def _unary(self):
        if self._peek() == "!":
            self._pos += 1
            return _Not(self._unary())
        return self._primary()

    def _primary(self):
        token = self._take()
        if token == "(":
            node = self._or()
            if self._take() != ")":
                raise ValueError("missing closing parenthesis")
            return node
        if token in ("&&", "||", ")"):
            raise ValueError(f"unexpected token {token!r}")
        if token in ("true", "false"):
            return _Const(token == "true")
        if token.startswith("["):
            name = token[1:-1]
            if not name:
                raise ValueError("empty variable name")
            return _Var(name)
        return _Var(token)


class ConditionMatcher(Matcher):
    """A matcher that evaluates a boolean expression over other matchers."""

    def __init__(
        self,
        expression: str,
        matchers: Mapping[str, Matcher] | None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._expression = expression
        self._tree = _Parser(_tokenize(expression)).parse()
        self._logger = logger or NOP_LOGGER
        matchers = matchers or {}
        self._matchers: dict[str, Matcher] = {}
        for name in dict.fromkeys(self._tree.names()):
            matcher = matchers.get(name)
            if matcher is None:
                raise ValueError(f"cannot find matcher {name}")
            self._matchers[name] = matcher

    @property
    def expression(self) -> str:
        return self._expression

    async def match(self, qctx: QueryContext) -> bool:
        evaluated: dict[str, str] = {}

        async def lookup(name: str) -> bool:
            result = bool(await self._matchers[name].match(qctx))
            evaluated[name] = "true" if result else "false"
            return result

        result = bool(await self._tree.evaluate(lookup))
        self._logger.debug(
            "condition matcher result",
            extra={"fields": {**qctx.info(), "result": result, **evaluated}},
        )
        return result


class ConditionNode(ChainNode):
    """Runs one of two branches depending on a matcher.

    Both branches are linked to the node that follows this one. Without a
    matcher the node does nothing but continue.
    """

    def __init__(
        self,
        matcher: Matcher | None = None,
        executable_node: ChainNode | None = None,
        else_node: ChainNode | None = None,
    ) -> None:
        super().__init__()
        self.matcher = matcher
        self.executable_node = executable_node
        self.else_node = else_node

    def link_next(self, node: ChainNode | None) -> None:
        self.next = node
        if self.executable_node is not None:
            last_node(self.executable_node).link_next(node)
        if self.else_node is not None:
            last_node(self.else_node).link_next(node)

    async def exec(self, qctx: QueryContext, next: ChainNode | None) -> None:
        if self.matcher is not None:
            try:
                matched = await self.matcher.match(qctx)
            except Exception as err:
                err.add_note("matcher failed")
                raise
            if matched and self.executable_node is not None:
                await exec_chain_node(qctx, self.executable_node)
                return
            if not matched and self.else_node is not None:
                await exec_chain_node(qctx, self.else_node)
                return
        await exec_chain_node(qctx, next)