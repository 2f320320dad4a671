"""
SQL text helpers.

Placeholders are always written as ``?`` at this layer. Tokenization skips
quoted literals and identifiers so a ``?`` inside them is never counted.
"""
import re
from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    """Token types identified during SQL scanning."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    PLACEHOLDER = auto()
    PERCENT = auto()


@dataclass(slots=True)
class Token:
    """Token from SQL scanning."""
    type: TokenType
    text: str


_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    |(?P<qmark>\?)
    |(?P<percent>%)
""", re.VERBOSE)


def tokenize_sql(sql: str) -> list[Token]:
    """Split SQL into text, literal and placeholder tokens.

    >>> [t.type.name for t in tokenize_sql("a = ? AND b = '?'")]
    ['SQL_TEXT', 'PLACEHOLDER', 'SQL_TEXT', 'STRING_LITERAL']
    """
    tokens = []
    last_end = 0
    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()
        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start]))
        if match.group('string'):
            ttype = TokenType.STRING_LITERAL
        elif match.group('qmark'):
            ttype = TokenType.PLACEHOLDER
        else:
            ttype = TokenType.PERCENT
        tokens.append(Token(ttype, match.group(0)))
        last_end = end
    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:]))
    return tokens


def count_placeholders(sql: str) -> int:
    """Number of ``?`` placeholders outside quoted literals.

    >>> count_placeholders("INSERT INTO t (id, s) VALUES (?, '?')")
    1
    """
    return sum(1 for t in tokenize_sql(sql) if t.type == TokenType.PLACEHOLDER)


def to_pyformat(sql: str) -> str:
    """Convert ``?`` placeholders to ``%s`` and escape literal percent signs.

    >>> to_pyformat("SELECT * FROM t WHERE a LIKE '10%' AND b = ?")
    "SELECT * FROM t WHERE a LIKE '10%%' AND b = %s"
    """
    out = []
    for token in tokenize_sql(sql):
        if token.type == TokenType.PLACEHOLDER:
            out.append('%s')
        elif token.type == TokenType.PERCENT:
            out.append('%%')
        elif token.type == TokenType.STRING_LITERAL:
            out.append(token.text.replace('%', '%%'))
        else:
            out.append(token.text)
    return ''.join(out)


def quote_identifier(identifier: str) -> str:
    """Safely quote a table or column name.

    >>> quote_identifier('my"table')
    '"my""table"'
    """
    return '"' + str(identifier).replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Quote a string literal.

    >>> quote_literal("it's")
    "'it''s'"
    """
    return "'" + value.replace("'", "''") + "'"


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
