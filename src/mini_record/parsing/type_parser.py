"""Parser for the type declaration DSL."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

import ply.yacc as yacc

from mini_record.callbacks import CallbackPhase
from mini_record.parsing.type_lexer import TypeLexer
from mini_record.types import RelationshipKind, TypeRegistry


@dataclass
class ColumnSpec:
    """A ``name: KIND`` column declaration."""

    name: str
    kind: str


@dataclass
class RelationshipSpec:
    """A relationship declaration, optionally with an explicit accessor name."""

    kind: RelationshipKind
    target: str
    name: str | None = None


@dataclass
class CallbackSpec:
    """A save callback naming a record method."""

    phase: CallbackPhase
    method: str


MemberSpec = Union[ColumnSpec, RelationshipSpec, CallbackSpec]


@dataclass
class TypeSpec:
    """Specification for a record type before registration."""

    name: str
    members: list[MemberSpec]


class TypeParser:
    """Parser for the type declaration DSL.

    Example::

        User {
            name: TEXT,
            email: TEXT,
            has_many Post,
            before_save normalize_email
        }
    """

    tokens = TypeLexer.tokens

    def __init__(self) -> None:
        self.lexer = TypeLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_schema(self, p: yacc.YaccProduction) -> None:
        """schema : type_list"""
        p[0] = p[1]

    def p_schema_empty(self, p: yacc.YaccProduction) -> None:
        """schema :"""
        p[0] = []

    def p_type_list_single(self, p: yacc.YaccProduction) -> None:
        """type_list : type_def"""
        p[0] = [p[1]]

    def p_type_list_multiple(self, p: yacc.YaccProduction) -> None:
        """type_list : type_list type_def"""
        p[0] = p[1] + [p[2]]

    def p_type_def(self, p: yacc.YaccProduction) -> None:
        """type_def : IDENTIFIER LBRACE member_list RBRACE
                    | IDENTIFIER LBRACE member_list COMMA RBRACE"""
        p[0] = TypeSpec(name=p[1], members=p[3])

    def p_type_def_empty(self, p: yacc.YaccProduction) -> None:
        """type_def : IDENTIFIER LBRACE RBRACE"""
        p[0] = TypeSpec(name=p[1], members=[])

    def p_member_list_single(self, p: yacc.YaccProduction) -> None:
        """member_list : member"""
        p[0] = [p[1]]

    def p_member_list_multiple(self, p: yacc.YaccProduction) -> None:
        """member_list : member_list member
                       | member_list COMMA member"""
        p[0] = p[1] + [p[len(p) - 1]]

    def p_member_column(self, p: yacc.YaccProduction) -> None:
        """member : IDENTIFIER COLON IDENTIFIER"""
        p[0] = ColumnSpec(name=p[1], kind=p[3])

    def p_member_relationship(self, p: yacc.YaccProduction) -> None:
        """member : relationship_kind IDENTIFIER"""
        p[0] = RelationshipSpec(kind=p[1], target=p[2])

    def p_member_relationship_named(self, p: yacc.YaccProduction) -> None:
        """member : relationship_kind IDENTIFIER AS IDENTIFIER"""
        p[0] = RelationshipSpec(kind=p[1], target=p[2], name=p[4])

    def p_relationship_kind(self, p: yacc.YaccProduction) -> None:
        """relationship_kind : BELONGS_TO
                             | HAS_MANY
                             | HAS_ONE"""
        p[0] = RelationshipKind(p[1])

    def p_member_callback(self, p: yacc.YaccProduction) -> None:
        """member : BEFORE_SAVE IDENTIFIER
                  | AFTER_SAVE IDENTIFIER"""
        p[0] = CallbackSpec(phase=CallbackPhase(p[1]), method=p[2])

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (line {p.lineno})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, **kwargs)

    def parse_specs(self, data: str) -> list[TypeSpec]:
        """Parse declarations into unregistered type specs."""
        if self.parser is None:
            self.build(debug=False, write_tables=False)

        self.lexer.lexer.lineno = 1
        specs = self.parser.parse(data, lexer=self.lexer.lexer)
        return specs or []

    def parse(self, data: str, registry: TypeRegistry | None = None) -> TypeRegistry:
        """Parse declarations and return a populated TypeRegistry.

        Args:
            data: DSL text.
            registry: Registry to add to; a new one is created if omitted.
        """
        if registry is None:
            registry = TypeRegistry()
        specs = self.parse_specs(data)

        # Declare every type first so relationships may refer forward
        for spec in specs:
            registry.declare_type(spec.name)

        for spec in specs:
            for member in spec.members:
                if isinstance(member, ColumnSpec):
                    registry.declare_column(spec.name, member.name, member.kind)
                elif isinstance(member, RelationshipSpec):
                    registry.declare_relationship(
                        spec.name, member.kind, member.target, name=member.name
                    )
                elif member.phase is CallbackPhase.BEFORE_SAVE:
                    registry.register_before_save(spec.name, member.method)
                else:
                    registry.register_after_save(spec.name, member.method)

        return registry
