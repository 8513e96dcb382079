"""Command tokenizer and pipeline segmenter.

Splits a command line into shell words with a small quote-state lexer
(single quotes, double quotes and backslash escapes are honoured and
removed; no expansion is performed) and groups the words into segments
separated by ``|``, ``||``, ``&&``, ``;`` and ``&``.

Substitutions (``$(...)``, ``${...}``, backticks, ``<(...)``) are kept as
literal word content, so operators inside them never split a segment.
"""

import re

from shellgate.engine.models import Segment, Token, TokenKind

# Wrapper commands skipped when they lead a segment
PRECOMMANDS: frozenset[str] = frozenset(
    {
        "nocorrect",
        "noglob",
        "builtin",
        "command",
        "exec",
        "time",
        "nice",
        "nohup",
        "sudo",
        "doas",
        "env",
    }
)

_ASSIGNMENT_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*=")

_WHITESPACE = " \t\r"

# Escapes that keep their meaning inside double quotes
_DQUOTE_ESCAPABLE = '$`"\\'


class TokenizeError(ValueError):
    """Raised when a command line cannot be split into words."""


class SegmentError(ValueError):
    """Raised when an operator has no command in front of it."""


def is_assignment(word: str) -> bool:
    """Check for a ``NAME=value`` word."""
    return _ASSIGNMENT_PATTERN.match(word) is not None


def is_skippable_prefix(word: str) -> bool:
    """Check whether a word is skipped at the front of a segment."""
    return word in PRECOMMANDS or is_assignment(word)


def next_command(tokens: list[Token], start: int) -> str | None:
    """Find the first real command word at or after ``start``.

    Precommands and assignments are skipped. The search stops at the
    next operator.

    Returns:
        The command word, or None if the segment has no command.
    """
    for token in tokens[start:]:
        if token.is_operator:
            return None
        if is_skippable_prefix(token.text):
            continue
        return token.text
    return None


def _find_closing(line: str, open_index: int) -> int:
    """Return the index of the bracket closing ``line[open_index]``.

    Quoted text and backslash escapes inside the brackets are skipped.
    """
    opener = line[open_index]
    closer = ")" if opener == "(" else "}"
    depth = 0
    i = open_index
    n = len(line)

    while i < n:
        ch = line[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "'":
            end = line.find("'", i + 1)
            if end == -1:
                break
            i = end + 1
            continue
        if ch == '"':
            i += 1
            while i < n and line[i] != '"':
                i += 2 if line[i] == "\\" else 1
            i += 1
            continue
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return i
        i += 1

    raise TokenizeError(f"Unterminated '{line[max(open_index - 1, 0)]}{opener}' substitution")


def _find_backtick(line: str, start: int) -> int:
    """Return the index of the backtick closing the one before ``start``."""
    i = start
    while i < len(line):
        if line[i] == "\\":
            i += 2
            continue
        if line[i] == "`":
            return i
        i += 1
    raise TokenizeError("Unterminated backtick substitution")


class CommandTokenizer:
    """Tokenizes command lines and groups tokens into segments."""

    def tokenize(self, line: str) -> list[Token]:
        """Split a command line into words and operator tokens.

        Args:
            line: Raw command line.

        Returns:
            Tokens in source order; empty for an empty or blank line.

        Raises:
            TokenizeError: On an unterminated quote or substitution.
        """
        tokens: list[Token] = []
        word: list[str] = []
        in_word = False
        i = 0
        n = len(line)

        def flush() -> None:
            nonlocal in_word
            if in_word:
                tokens.append(Token("".join(word)))
                word.clear()
                in_word = False

        def emit(operator: str) -> None:
            flush()
            tokens.append(Token(operator, TokenKind.OPERATOR))

        def tail() -> str:
            return "".join(word)[-1:]

        while i < n:
            ch = line[i]
            nxt = line[i + 1] if i + 1 < n else ""

            if ch in _WHITESPACE:
                flush()
                i += 1
            elif ch == "\n":
                flush()
                # A newline ends a command unless the line is already
                # waiting for one (leading newline, after an operator)
                if tokens and not tokens[-1].is_operator:
                    emit(";")
                i += 1
            elif ch == "#" and not in_word:
                end = line.find("\n", i)
                i = n if end == -1 else end
            elif ch == "'":
                end = line.find("'", i + 1)
                if end == -1:
                    raise TokenizeError("Unterminated single quote")
                word.append(line[i + 1 : end])
                in_word = True
                i = end + 1
            elif ch == '"':
                i = self._read_double_quoted(line, i + 1, word)
                in_word = True
            elif ch == "\\":
                if nxt == "\n":
                    i += 2  # line continuation
                elif nxt:
                    word.append(nxt)
                    in_word = True
                    i += 2
                else:
                    word.append(ch)
                    in_word = True
                    i += 1
            elif (ch == "$" and nxt in ("(", "{")) or (ch in "<>" and nxt == "("):
                end = _find_closing(line, i + 1)
                word.append(line[i : end + 1])
                in_word = True
                i = end + 1
            elif ch == "`":
                end = _find_backtick(line, i + 1)
                word.append(line[i : end + 1])
                in_word = True
                i = end + 1
            elif ch == "|":
                if in_word and tail() == ">":
                    word.append(ch)  # >| clobber redirection
                    i += 1
                elif nxt == "|":
                    emit("||")
                    i += 2
                elif nxt == "&":
                    emit("|")  # |& also pipes stderr
                    i += 2
                else:
                    emit("|")
                    i += 1
            elif ch == "&":
                if nxt == "&":
                    emit("&&")
                    i += 2
                elif nxt == ">" or (in_word and tail() in ("<", ">")):
                    word.append(ch)  # &>, 2>&1, >&2
                    in_word = True
                    i += 1
                else:
                    emit("&")
                    i += 1
            elif ch == ";":
                emit(";")
                i += 2 if nxt == ";" else 1
            else:
                word.append(ch)
                in_word = True
                i += 1

        flush()
        return tokens

    def _read_double_quoted(self, line: str, start: int, word: list[str]) -> int:
        """Consume a double-quoted string starting after the opening quote.

        Returns:
            Index just past the closing quote.
        """
        i = start
        n = len(line)
        while i < n:
            ch = line[i]
            nxt = line[i + 1] if i + 1 < n else ""
            if ch == '"':
                return i + 1
            if ch == "\\":
                if nxt == "\n":
                    i += 2
                elif nxt in _DQUOTE_ESCAPABLE and nxt:
                    word.append(nxt)
                    i += 2
                else:
                    word.append(ch)
                    i += 1
            elif ch == "$" and nxt in ("(", "{"):
                end = _find_closing(line, i + 1)
                word.append(line[i : end + 1])
                i = end + 1
            elif ch == "`":
                end = _find_backtick(line, i + 1)
                word.append(line[i : end + 1])
                i = end + 1
            else:
                word.append(ch)
                i += 1
        raise TokenizeError("Unterminated double quote")

    def segment(self, tokens: list[Token]) -> list[Segment]:
        """Group tokens into segments.

        Precommands and assignments are skipped only while they lead the
        segment being built; afterwards every word is kept verbatim.

        Raises:
            SegmentError: If an operator has nothing in front of it. An
                operator at the very end of the line is tolerated.
        """
        segments: list[Segment] = []
        words: list[str] = []
        prefix: list[str] = []

        for token in tokens:
            if token.is_operator:
                if not words:
                    raise SegmentError(f"Dangling operator '{token.text}'")
                segments.append(
                    Segment(
                        command=words[0],
                        arguments=words[1:],
                        prefix=prefix,
                        separator=token.text,
                    )
                )
                words = []
                prefix = []
                continue

            if not words and is_skippable_prefix(token.text):
                prefix.append(token.text)
                continue

            words.append(token.text)

        if words:
            segments.append(Segment(command=words[0], arguments=words[1:], prefix=prefix))

        return segments

    def split(self, line: str) -> list[Segment]:
        """Tokenize and segment a command line in one step."""
        return self.segment(self.tokenize(line))

    def get_all_commands(self, line: str) -> list[str]:
        """Extract the command name of every segment, in source order."""
        return [segment.command for segment in self.split(line)]
