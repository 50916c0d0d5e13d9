"""Lexer for the type declaration DSL."""

import ply.lex as lex


class TypeLexer:
    """Lexer for tokenizing type declaration DSL."""

    # Reserved keywords
    reserved = {
        "belongs_to": "BELONGS_TO",
        "has_many": "HAS_MANY",
        "has_one": "HAS_ONE",
        "before_save": "BEFORE_SAVE",
        "after_save": "AFTER_SAVE",
        "as": "AS",
    }

    # Token list
    tokens = [
        "IDENTIFIER",
        "LBRACE",
        "RBRACE",
        "COLON",
        "COMMA",
    ] + list(reserved.values())

    # Simple tokens
    t_LBRACE = r"\{"
    t_RBRACE = r"\}"
    t_COLON = r":"
    t_COMMA = r","

    # Ignored characters (spaces, tabs, and carriage returns)
    t_ignore = " \t\r"

    # Comments
    t_ignore_COMMENT = r"\#[^\n]*"

    def __init__(self) -> None:
        self.lexer: lex.Lexer = None  # type: ignore

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[a-zA-Z_][a-zA-Z0-9_]*"
        t.type = self.reserved.get(t.value, "IDENTIFIER")
        return t

    def t_NEWLINE(self, t: lex.LexToken) -> None:
        r"\n+"
        t.lexer.lineno += len(t.value)

    def t_error(self, t: lex.LexToken) -> None:
        raise SyntaxError(f"Illegal character '{t.value[0]}' at line {t.lineno}")

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
        self.lexer.lineno = 1
        self.lexer.input(data)

    def token(self) -> lex.LexToken | None:
        """Return the next token."""
        return self.lexer.token()

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Tokenize the input and return all tokens."""
        self.input(data)
        tokens = []
        while True:
            tok = self.token()
            if tok is None:
                break
            tokens.append(tok)
        return tokens
