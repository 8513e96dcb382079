"""Tests for the command tokenizer and segmenter.

These tests only split command strings - nothing is executed.
"""

import pytest

from shellgate.engine.models import Token, TokenKind
from shellgate.engine.tokenizer import (
    CommandTokenizer,
    SegmentError,
    TokenizeError,
    is_assignment,
    is_skippable_prefix,
    next_command,
)


def words(tokens: list[Token]) -> list[str]:
    return [token.text for token in tokens]


class TestTokenize:
    """Tests for word splitting and quote removal."""

    def setup_method(self):
        self.tokenizer = CommandTokenizer()

    def test_empty_line(self):
        assert self.tokenizer.tokenize("") == []
        assert self.tokenizer.tokenize("   \t ") == []

    def test_simple_words(self):
        assert words(self.tokenizer.tokenize("ls -la /tmp")) == ["ls", "-la", "/tmp"]

    def test_single_quotes_removed(self):
        tokens = self.tokenizer.tokenize("echo 'hello world'")
        assert words(tokens) == ["echo", "hello world"]

    def test_double_quotes_removed(self):
        tokens = self.tokenizer.tokenize('echo "hello  world"')
        assert words(tokens) == ["echo", "hello  world"]

    def test_adjacent_quotes_join_one_word(self):
        tokens = self.tokenizer.tokenize("""echo a'b c'"d e"f""")
        assert words(tokens) == ["echo", "ab cd ef"]

    def test_empty_quotes_make_empty_word(self):
        tokens = self.tokenizer.tokenize("printf '' x")
        assert words(tokens) == ["printf", "", "x"]

    def test_backslash_escapes(self):
        tokens = self.tokenizer.tokenize(r"echo a\ b \; c")
        assert words(tokens) == ["echo", "a b", ";", "c"]
        assert all(not token.is_operator for token in tokens)

    def test_double_quote_escapes(self):
        tokens = self.tokenizer.tokenize(r'echo "a \"b\" \$HOME \n"')
        assert words(tokens) == ["echo", 'a "b" $HOME \\n']

    def test_no_expansion(self):
        tokens = self.tokenizer.tokenize("echo $HOME ~ *.py")
        assert words(tokens) == ["echo", "$HOME", "~", "*.py"]

    def test_quoted_operator_is_a_word(self):
        tokens = self.tokenizer.tokenize("echo ';' '|' \"&&\"")
        assert [token.kind for token in tokens] == [TokenKind.WORD] * 4

    def test_unterminated_single_quote(self):
        with pytest.raises(TokenizeError):
            self.tokenizer.tokenize("echo 'oops")

    def test_unterminated_double_quote(self):
        with pytest.raises(TokenizeError):
            self.tokenizer.tokenize('echo "oops')

    def test_tokenize_error_is_value_error(self):
        with pytest.raises(ValueError):
            self.tokenizer.tokenize("echo `oops")


class TestOperators:
    """Tests for operator detection."""

    def setup_method(self):
        self.tokenizer = CommandTokenizer()

    @pytest.mark.parametrize("operator", ["|", "||", "&&", ";", "&"])
    def test_spaced_operators(self, operator):
        tokens = self.tokenizer.tokenize(f"a {operator} b")
        assert tokens[1] == Token(operator, TokenKind.OPERATOR)

    def test_operators_without_spaces(self):
        tokens = self.tokenizer.tokenize("a;b&&c||d|e")
        assert words(tokens) == ["a", ";", "b", "&&", "c", "||", "d", "|", "e"]
        assert [token.is_operator for token in tokens] == [
            False, True, False, True, False, True, False, True, False
        ]

    def test_pipe_ampersand_is_pipe(self):
        tokens = self.tokenizer.tokenize("make |& tee log")
        assert tokens[1] == Token("|", TokenKind.OPERATOR)

    def test_redirections_stay_in_words(self):
        tokens = self.tokenizer.tokenize("cmd 2>&1 >&2 &>out >|file")
        assert words(tokens) == ["cmd", "2>&1", ">&2", "&>out", ">|file"]
        assert not any(token.is_operator for token in tokens)

    def test_trailing_background(self):
        tokens = self.tokenizer.tokenize("sleep 1 &")
        assert tokens[-1] == Token("&", TokenKind.OPERATOR)

    def test_newline_separates_commands(self):
        tokens = self.tokenizer.tokenize("echo a\n\necho b\n")
        assert words(tokens) == ["echo", "a", ";", "echo", "b", ";"]

    def test_newline_after_pipe_continues(self):
        tokens = self.tokenizer.tokenize("echo a |\n  cat")
        assert words(tokens) == ["echo", "a", "|", "cat"]

    def test_line_continuation(self):
        tokens = self.tokenizer.tokenize("echo a \\\n  b")
        assert words(tokens) == ["echo", "a", "b"]

    def test_comment(self):
        tokens = self.tokenizer.tokenize("echo a # ; rm -rf /\necho b")
        assert words(tokens) == ["echo", "a", ";", "echo", "b"]

    def test_hash_inside_word_is_literal(self):
        tokens = self.tokenizer.tokenize("echo a#b")
        assert words(tokens) == ["echo", "a#b"]


class TestSubstitutions:
    """Substitutions are kept verbatim and never split a segment."""

    def setup_method(self):
        self.tokenizer = CommandTokenizer()

    def test_command_substitution(self):
        tokens = self.tokenizer.tokenize("echo $(ls; pwd) done")
        assert words(tokens) == ["echo", "$(ls; pwd)", "done"]

    def test_nested_substitution(self):
        tokens = self.tokenizer.tokenize("echo $(dirname $(which ls))")
        assert words(tokens) == ["echo", "$(dirname $(which ls))"]

    def test_substitution_with_quoted_paren(self):
        tokens = self.tokenizer.tokenize("echo $(echo ')')")
        assert words(tokens) == ["echo", "$(echo ')')"]

    def test_parameter_expansion(self):
        tokens = self.tokenizer.tokenize("echo ${HOME:-/tmp}/x")
        assert words(tokens) == ["echo", "${HOME:-/tmp}/x"]

    def test_backticks(self):
        tokens = self.tokenizer.tokenize("echo `date | cut -c1-3`")
        assert words(tokens) == ["echo", "`date | cut -c1-3`"]

    def test_substitution_inside_double_quotes(self):
        tokens = self.tokenizer.tokenize('eval "$(starship init zsh)"')
        assert words(tokens) == ["eval", "$(starship init zsh)"]

    def test_process_substitution(self):
        tokens = self.tokenizer.tokenize("source <(fzf --zsh)")
        assert words(tokens) == ["source", "<(fzf --zsh)"]

    def test_unterminated_substitution(self):
        with pytest.raises(TokenizeError):
            self.tokenizer.tokenize("echo $(ls")


class TestSegment:
    """Tests for grouping tokens into segments."""

    def setup_method(self):
        self.tokenizer = CommandTokenizer()

    def test_single_segment(self):
        segments = self.tokenizer.split("ls -la")
        assert len(segments) == 1
        assert segments[0].command == "ls"
        assert segments[0].arguments == ["-la"]
        assert segments[0].separator is None

    def test_pipeline(self):
        segments = self.tokenizer.split("cat file | grep foo && echo ok")
        assert [s.command for s in segments] == ["cat", "grep", "echo"]
        assert [s.separator for s in segments] == ["|", "&&", None]

    def test_precommands_skipped_at_front(self):
        segments = self.tokenizer.split("sudo nohup rm -rf /tmp/x")
        assert segments[0].command == "rm"
        assert segments[0].prefix == ["sudo", "nohup"]

    def test_assignment_and_env_skipped(self):
        segments = self.tokenizer.split("env FOO=1 BAR=2 zoxide init zsh")
        assert segments[0].command == "zoxide"
        assert segments[0].prefix == ["env", "FOO=1", "BAR=2"]
        assert segments[0].arguments == ["init", "zsh"]

    def test_precommand_kept_mid_segment(self):
        segments = self.tokenizer.split("echo sudo time")
        assert segments[0].command == "echo"
        assert segments[0].arguments == ["sudo", "time"]

    def test_assignment_kept_after_command(self):
        segments = self.tokenizer.split("dd if=/dev/zero of=/tmp/x")
        assert segments[0].command == "dd"
        assert segments[0].arguments == ["if=/dev/zero", "of=/tmp/x"]

    def test_words_property(self):
        segment = self.tokenizer.split("rm -f a b")[0]
        assert segment.words == ["rm", "-f", "a", "b"]

    def test_leading_operator_is_dangling(self):
        with pytest.raises(SegmentError):
            self.tokenizer.split("| cat")

    def test_double_operator_is_dangling(self):
        with pytest.raises(SegmentError):
            self.tokenizer.split("echo a ; ; echo b")

    def test_prefix_only_segment_is_dangling(self):
        with pytest.raises(SegmentError):
            self.tokenizer.split("sudo | cat")

    def test_trailing_operator_tolerated(self):
        segments = self.tokenizer.split("echo a ;")
        assert len(segments) == 1
        assert segments[0].separator == ";"

    def test_trailing_prefix_only_segment_ignored(self):
        segments = self.tokenizer.split("echo a | sudo")
        assert [s.command for s in segments] == ["echo"]

    def test_get_all_commands(self):
        commands = self.tokenizer.get_all_commands("cd /tmp && FOO=1 make; nohup ./run &")
        assert commands == ["cd", "make", "./run"]


class TestHelpers:
    """Tests for the prefix helpers."""

    @pytest.mark.parametrize("word", ["FOO=1", "_x=", "PATH=/bin:/usr/bin", "a1=b=c"])
    def test_assignments(self, word):
        assert is_assignment(word)

    @pytest.mark.parametrize("word", ["=x", "1A=2", "--opt=val", "foo", "a-b=1"])
    def test_not_assignments(self, word):
        assert not is_assignment(word)

    def test_skippable_prefix(self):
        assert is_skippable_prefix("sudo")
        assert is_skippable_prefix("FOO=bar")
        assert not is_skippable_prefix("su")

    def test_next_command_skips_prefixes(self):
        tokens = CommandTokenizer().tokenize("curl x | sudo env A=1 bash")
        assert next_command(tokens, 3) == "bash"

    def test_next_command_stops_at_operator(self):
        tokens = CommandTokenizer().tokenize("sudo ; ls")
        assert next_command(tokens, 0) is None
