"""
Compiler for a GBNF-style grammar notation.

Supported syntax:
- Rules: ``name ::= alternatives``; a rule ends at a newline outside
  parentheses. Names use letters, digits and ``-``.
- Literals: ``"text"`` with escapes ``\\n \\t \\r \\\\ \\" \\[ \\] \\xHH \\uHHHH``
- Character classes: ``[a-z0-9_]``, negated with ``[^...]``
- Rule references, parenthesized groups, ``|`` alternation
- Postfix repetition: ``*``, ``+``, ``?``
- Comments starting with ``#``

Groups and repetitions are desugared into generated rules whose names contain
an underscore, so they never collide with user rule names. Every rule is
compiled to a list of alternatives; an alternative is a tuple of CharSet and
RuleRef elements. Undefined references and left recursion are rejected.
"""

import string
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple, Union

from sampler_lite.errors import GrammarParseError
from sampler_lite.interfaces import CompiledGrammar


@dataclass(frozen=True)
class CharSet:
    """Terminal matching one character.

    Attributes:
        ranges: Inclusive (start, end) character ranges
        negated: Match characters outside the ranges instead
    """

    ranges: Tuple[Tuple[str, str], ...]
    negated: bool = False

    def matches(self, ch: str) -> bool:
        hit = any(start <= ch <= end for start, end in self.ranges)
        return hit != self.negated


@dataclass(frozen=True)
class RuleRef:
    """Non-terminal reference by symbol id."""

    rule_id: int


Element = Union[CharSet, RuleRef]
Alternative = Tuple[Element, ...]

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "\\": "\\",
    '"': '"',
    "[": "[",
    "]": "]",
}


def _is_word_char(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch == "-")


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.symbol_ids: Dict[str, int] = {}
        self.rules: Dict[int, List[Alternative]] = {}
        self._references: Dict[int, int] = {}

    # ------------------------------------------------------------------
    def error(self, message: str) -> GrammarParseError:
        line = self.text.count("\n", 0, self.pos) + 1
        return GrammarParseError(f"{message} at line {line}, offset {self.pos}")

    def peek(self, ahead: int = 0) -> str:
        index = self.pos + ahead
        return self.text[index] if index < len(self.text) else ""

    def skip_space(self, newline_ok: bool) -> None:
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch == "#":
                while self.pos < len(self.text) and self.text[self.pos] not in "\r\n":
                    self.pos += 1
            elif ch in " \t" or (newline_ok and ch in "\r\n"):
                self.pos += 1
            else:
                break

    def symbol_id(self, name: str) -> int:
        if name not in self.symbol_ids:
            self.symbol_ids[name] = len(self.symbol_ids)
        return self.symbol_ids[name]

    def generated_symbol_id(self, base: str) -> int:
        n = len(self.symbol_ids)
        name = f"{base}_{n}"
        while name in self.symbol_ids:
            n += 1
            name = f"{base}_{n}"
        return self.symbol_id(name)

    # ------------------------------------------------------------------
    def parse(self) -> CompiledGrammar:
        self.skip_space(newline_ok=True)
        while self.pos < len(self.text):
            self.parse_rule()
            self.skip_space(newline_ok=True)

        for rule_id, offset in self._references.items():
            if rule_id not in self.rules:
                self.pos = offset
                name = next(k for k, v in self.symbol_ids.items() if v == rule_id)
                raise self.error(f"undefined rule identifier '{name}'")

        rules = [self.rules[i] for i in range(len(self.symbol_ids))]
        grammar = CompiledGrammar(rules=rules, symbol_ids=dict(self.symbol_ids))
        _check_left_recursion(grammar)
        return grammar

    def parse_name(self) -> str:
        start = self.pos
        while self.pos < len(self.text) and _is_word_char(self.text[self.pos]):
            self.pos += 1
        if start == self.pos:
            raise self.error(f"expecting name, found {self.peek()!r}")
        return self.text[start : self.pos]

    def parse_rule(self) -> None:
        name = self.parse_name()
        self.skip_space(newline_ok=False)
        if not self.text.startswith("::=", self.pos):
            raise self.error("expecting ::=")
        self.pos += 3
        self.skip_space(newline_ok=True)

        rule_id = self.symbol_id(name)
        self.rules[rule_id] = self.parse_alternatives(name, nested=False)

        self.skip_space(newline_ok=False)
        if self.peek() == "\r":
            self.pos += 1
        if self.peek() == "\n":
            self.pos += 1
        elif self.pos < len(self.text):
            raise self.error(f"expecting newline or end, found {self.peek()!r}")

    def parse_alternatives(self, rule_name: str, nested: bool) -> List[Alternative]:
        alternatives = [self.parse_sequence(rule_name, nested)]
        while self.peek() == "|":
            self.pos += 1
            self.skip_space(newline_ok=True)
            alternatives.append(self.parse_sequence(rule_name, nested))
        return alternatives

    def parse_sequence(self, rule_name: str, nested: bool) -> Alternative:
        seq: List[Element] = []
        last_start: Optional[int] = None

        while self.pos < len(self.text):
            ch = self.peek()
            if ch == '"':
                self.pos += 1
                last_start = len(seq)
                while self.peek() != '"':
                    if self.pos >= len(self.text):
                        raise self.error("unexpected end of input in literal")
                    c = self.parse_char()
                    seq.append(CharSet(((c, c),)))
            elif ch == "[":
                last_start = len(seq)
                seq.append(self.parse_char_class())
            elif _is_word_char(ch):
                offset = self.pos
                ref = RuleRef(self.symbol_id(self.parse_name()))
                self._references.setdefault(ref.rule_id, offset)
                last_start = len(seq)
                seq.append(ref)
            elif ch == "(":
                self.pos += 1
                self.skip_space(newline_ok=True)
                sub_id = self.generated_symbol_id(rule_name)
                self.rules[sub_id] = self.parse_alternatives(rule_name, nested=True)
                if self.peek() != ")":
                    raise self.error("expecting ')'")
                self.pos += 1
                last_start = len(seq)
                seq.append(RuleRef(sub_id))
            elif ch in "*+?":
                if last_start is None or last_start >= len(seq):
                    raise self.error(f"expecting preceding item to {ch}")
                self.pos += 1
                self.apply_repetition(seq, last_start, ch, rule_name)
            else:
                break

            if ch == '"':
                self.pos += 1
            self.skip_space(newline_ok=nested)

        return tuple(seq)

    def apply_repetition(
        self, seq: List[Element], start: int, op: str, rule_name: str
    ) -> None:
        item = tuple(seq[start:])
        del seq[start:]
        sub_id = self.generated_symbol_id(rule_name)
        if op == "?":
            self.rules[sub_id] = [item, ()]
            seq.append(RuleRef(sub_id))
            return

        # item* becomes  rec ::= item rec | (empty)
        self.rules[sub_id] = [item + (RuleRef(sub_id),), ()]
        if op == "+":
            seq.extend(item)
        seq.append(RuleRef(sub_id))

    def parse_char(self) -> str:
        ch = self.peek()
        if ch == "":
            raise self.error("unexpected end of input")
        if ch != "\\":
            self.pos += 1
            return ch

        code = self.peek(1)
        if code in _ESCAPES:
            self.pos += 2
            return _ESCAPES[code]
        if code in ("x", "u"):
            width = 2 if code == "x" else 4
            digits = self.text[self.pos + 2 : self.pos + 2 + width]
            if len(digits) != width or not all(c in string.hexdigits for c in digits):
                raise self.error(f"invalid escape \\{code}{digits}")
            self.pos += 2 + width
            return chr(int(digits, 16))
        raise self.error(f"unknown escape \\{code}")

    def parse_char_class(self) -> CharSet:
        self.pos += 1
        negated = self.peek() == "^"
        if negated:
            self.pos += 1

        ranges: List[Tuple[str, str]] = []
        while self.peek() != "]":
            if self.pos >= len(self.text):
                raise self.error("unexpected end of input in character class")
            start = self.parse_char()
            end = start
            if self.peek() == "-" and self.peek(1) not in ("]", ""):
                self.pos += 1
                end = self.parse_char()
            ranges.append((start, end))
        self.pos += 1
        return CharSet(tuple(ranges), negated)


def _nullable_rules(grammar: CompiledGrammar) -> Set[int]:
    nullable: Set[int] = set()
    changed = True
    while changed:
        changed = False
        for rule_id, alternatives in enumerate(grammar.rules):
            if rule_id in nullable:
                continue
            for alt in alternatives:
                if all(isinstance(e, RuleRef) and e.rule_id in nullable for e in alt):
                    nullable.add(rule_id)
                    changed = True
                    break
    return nullable


def _check_left_recursion(grammar: CompiledGrammar) -> None:
    """Reject grammars where a rule can derive itself in leftmost position."""
    nullable = _nullable_rules(grammar)
    leftmost: Dict[int, Set[int]] = {}
    for rule_id, alternatives in enumerate(grammar.rules):
        refs: Set[int] = set()
        for alt in alternatives:
            for element in alt:
                if not isinstance(element, RuleRef):
                    break
                refs.add(element.rule_id)
                if element.rule_id not in nullable:
                    break
        leftmost[rule_id] = refs

    names = {v: k for k, v in grammar.symbol_ids.items()}
    for rule_id in leftmost:
        stack = list(leftmost[rule_id])
        seen: Set[int] = set()
        while stack:
            current = stack.pop()
            if current == rule_id:
                raise GrammarParseError(
                    f"left recursion in rule '{names.get(rule_id, rule_id)}'"
                )
            if current in seen:
                continue
            seen.add(current)
            stack.extend(leftmost.get(current, ()))


def parse_gbnf(text: str) -> CompiledGrammar:
    """Compile grammar text.

    Returns:
        CompiledGrammar; empty (no rules) when the text holds no rules

    Raises:
        GrammarParseError: If the text is malformed
    """
    return _Parser(text).parse()
