"""Recursive-descent parser producing a small, safe AST.

Grammar (JavaScript subset, no classes, no ``this``):

    program     := statement*
    statement   := block | declaration | if | loop | return | break
                 | continue | ";" | expression
    loop        := "for" "(" [init] ";" [expr] ";" [expr] ")" statement
                 | "for" "(" [decl-kind] IDENT ("of" | "in") expr ")" statement
                 | "while" "(" expr ")" statement
    declaration := ("var" | "let" | "const") IDENT ["=" assignment] ("," ...)*
    assignment  := arrow | target ("=" | "+=" | ...) assignment | conditional
    conditional := nullish ["?" assignment ":" assignment]
    ...         := "??" < "||" < "&&" < equality < relational < additive
                   < multiplicative < "**" < unary < postfix < primary
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from formio_engine.errors import ExpressionSyntaxError
from formio_engine.sandbox.lexer import Token, tokenize
from formio_engine.sandbox.values import UNDEFINED, normalize_number


@dataclass
class Node:
    pass


# Expressions


@dataclass
class Literal(Node):
    value: Any


@dataclass
class Identifier(Node):
    name: str


@dataclass
class TemplateLiteral(Node):
    quasis: List[str]
    expressions: List[Node]


@dataclass
class RegexLiteral(Node):
    pattern: str
    flags: str


@dataclass
class ArrayLiteral(Node):
    items: List[Node]


@dataclass
class ObjectLiteral(Node):
    properties: List[Tuple[str, Node]]


@dataclass
class Member(Node):
    obj: Node
    prop: Node
    computed: bool = False
    optional: bool = False


@dataclass
class Call(Node):
    callee: Node
    args: List[Node]
    optional: bool = False


@dataclass
class New(Node):
    callee: Node
    args: List[Node]


@dataclass
class OptionalChain(Node):
    expr: Node


@dataclass
class Unary(Node):
    op: str
    operand: Node


@dataclass
class Binary(Node):
    op: str
    left: Node
    right: Node


@dataclass
class Logical(Node):
    op: str
    left: Node
    right: Node


@dataclass
class Conditional(Node):
    test: Node
    consequent: Node
    alternate: Node


@dataclass
class Assign(Node):
    op: str
    target: Node
    value: Node


@dataclass
class Function(Node):
    params: List[str]
    body: Node
    expression_body: bool


@dataclass
class Update(Node):
    op: str
    target: Node
    prefix: bool


# Statements


@dataclass
class VarDecl(Node):
    kind: str
    declarations: List[Tuple[str, Optional[Node]]]


@dataclass
class ExprStatement(Node):
    expr: Node


@dataclass
class If(Node):
    test: Node
    consequent: Node
    alternate: Optional[Node] = None


@dataclass
class For(Node):
    init: Optional[Node]
    test: Optional[Node]
    update: Optional[Node]
    body: Node


@dataclass
class ForEach(Node):
    kind: Optional[str]
    name: str
    each: str
    iterable: Node
    body: Node


@dataclass
class While(Node):
    test: Node
    body: Node


@dataclass
class Break(Node):
    pass


@dataclass
class Continue(Node):
    pass


@dataclass
class Return(Node):
    argument: Optional[Node] = None


@dataclass
class Block(Node):
    body: List[Node] = field(default_factory=list)


@dataclass
class Program(Node):
    body: List[Node] = field(default_factory=list)

    @property
    def single_expression(self) -> Optional[Node]:
        """The expression of a one-statement snippet like ``data.a > 1``."""
        if len(self.body) == 1 and isinstance(self.body[0], ExprStatement):
            expr = self.body[0].expr
            if not isinstance(expr, Assign):
                return expr
        return None


_ASSIGN_OPS = {"=", "+=", "-=", "*=", "/=", "%=", "**="}
_EQUALITY_OPS = {"===", "!==", "==", "!="}
_RELATIONAL_OPS = {"<", ">", "<=", ">="}


class Parser:
    """Parses one snippet. Use ``parse()`` for scripts."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0
        self.loop_depth = 0

    # Token helpers

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int = 1) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind != "EOF":
            self.pos += 1
        return token

    def check(self, kind: str, value: Any = None) -> bool:
        token = self.current
        return token.kind == kind and (value is None or token.value == value)

    def check_punct(self, *values: str) -> bool:
        return self.current.kind == "PUNCT" and self.current.value in values

    def match_punct(self, *values: str) -> Optional[str]:
        if self.check_punct(*values):
            return self.advance().value
        return None

    def expect_punct(self, value: str) -> Token:
        if not self.check_punct(value):
            self.error(f"Expected '{value}'")
        return self.advance()

    def error(self, message: str) -> None:
        token = self.current
        found = "end of input" if token.kind == "EOF" else repr(token.value)
        raise ExpressionSyntaxError(f"{message}, found {found}", token.pos)

    # Statements

    def parse(self) -> Program:
        body = []
        while not self.check("EOF"):
            body.append(self.parse_statement())
        return Program(body)

    def parse_statement(self) -> Node:
        if self.check_punct("{"):
            return self.parse_block()
        if self.check_punct(";"):
            self.advance()
            return Block([])
        if self.check("KEYWORD", "var") or self.check("KEYWORD", "let") or self.check("KEYWORD", "const"):
            statement = self.parse_declaration()
            self.end_statement()
            return statement
        if self.check("KEYWORD", "if"):
            return self.parse_if()
        if self.check("KEYWORD", "for"):
            return self.parse_for()
        if self.check("KEYWORD", "while"):
            self.advance()
            self.expect_punct("(")
            test = self.parse_expression()
            self.expect_punct(")")
            return While(test, self.parse_loop_body())
        if self.check("KEYWORD", "break") or self.check("KEYWORD", "continue"):
            token = self.advance()
            if not self.loop_depth:
                raise ExpressionSyntaxError(f"Illegal {token.value} statement", token.pos)
            self.end_statement()
            return Break() if token.value == "break" else Continue()
        if self.check("KEYWORD", "return"):
            self.advance()
            argument = None
            if not (self.check_punct(";", "}") or self.check("EOF") or self.current.newline_before):
                argument = self.parse_expression()
            self.end_statement()
            return Return(argument)
        expr = self.parse_expression()
        self.end_statement()
        return ExprStatement(expr)

    def end_statement(self) -> None:
        if self.match_punct(";"):
            return
        if self.check_punct("}") or self.check("EOF") or self.current.newline_before:
            return
        self.error("Expected ';'")

    def parse_block(self) -> Block:
        self.expect_punct("{")
        body = []
        while not self.check_punct("}"):
            if self.check("EOF"):
                self.error("Expected '}'")
            body.append(self.parse_statement())
        self.advance()
        return Block(body)

    def parse_declaration(self) -> VarDecl:
        kind = self.advance().value
        declarations = []
        while True:
            if not self.check("IDENT"):
                self.error("Expected variable name")
            name = self.advance().value
            init = None
            if self.match_punct("="):
                init = self.parse_assignment()
            elif kind == "const":
                self.error("Missing initializer in const declaration")
            declarations.append((name, init))
            if not self.match_punct(","):
                break
        return VarDecl(kind, declarations)

    def parse_if(self) -> If:
        self.advance()
        self.expect_punct("(")
        test = self.parse_expression()
        self.expect_punct(")")
        consequent = self.parse_statement()
        alternate = None
        if self.check("KEYWORD", "else"):
            self.advance()
            alternate = self.parse_statement()
        return If(test, consequent, alternate)

    def parse_for(self) -> Node:
        self.advance()
        self.expect_punct("(")
        kind = None
        offset = 0
        if self.check("KEYWORD", "var") or self.check("KEYWORD", "let") or self.check("KEYWORD", "const"):
            kind = self.current.value
            offset = 1
        name_token = self.peek(offset)
        each_token = self.peek(offset + 1)
        if name_token.kind == "IDENT" and each_token.kind == "IDENT" and each_token.value in ("of", "in"):
            self.pos += offset + 2
            iterable = self.parse_expression()
            self.expect_punct(")")
            return ForEach(kind, name_token.value, each_token.value, iterable, self.parse_loop_body())

        init = None
        if kind is not None:
            init = self.parse_declaration()
        elif not self.check_punct(";"):
            init = ExprStatement(self.parse_expression())
        self.expect_punct(";")
        test = None if self.check_punct(";") else self.parse_expression()
        self.expect_punct(";")
        update = None if self.check_punct(")") else self.parse_expression()
        self.expect_punct(")")
        return For(init, test, update, self.parse_loop_body())

    def parse_loop_body(self) -> Node:
        self.loop_depth += 1
        try:
            return self.parse_statement()
        finally:
            self.loop_depth -= 1

    def parse_function_body(self) -> Block:
        # break and continue never cross a function boundary
        outer, self.loop_depth = self.loop_depth, 0
        try:
            return self.parse_block()
        finally:
            self.loop_depth = outer

    # Expressions

    def parse_expression(self) -> Node:
        return self.parse_assignment()

    def parse_assignment(self) -> Node:
        if self.is_arrow_start():
            return self.parse_arrow()
        left = self.parse_conditional()
        if self.check_punct(*_ASSIGN_OPS):
            op_token = self.current
            if not isinstance(left, (Identifier, Member)):
                raise ExpressionSyntaxError("Invalid assignment target", op_token.pos)
            op = self.advance().value
            value = self.parse_assignment()
            return Assign(op, left, value)
        return left

    def is_arrow_start(self) -> bool:
        if self.check("IDENT") and self.peek().kind == "PUNCT" and self.peek().value == "=>":
            return True
        if not self.check_punct("("):
            return False
        depth = 0
        index = self.pos
        while index < len(self.tokens):
            token = self.tokens[index]
            if token.kind == "EOF":
                return False
            if token.kind == "PUNCT" and token.value == "(":
                depth += 1
            elif token.kind == "PUNCT" and token.value == ")":
                depth -= 1
                if depth == 0:
                    following = self.tokens[index + 1]
                    return following.kind == "PUNCT" and following.value == "=>"
            index += 1
        return False

    def parse_arrow(self) -> Function:
        params = []
        if self.check("IDENT"):
            params.append(self.advance().value)
        else:
            params = self.parse_params()
        self.expect_punct("=>")
        if self.check_punct("{"):
            return Function(params, self.parse_function_body(), expression_body=False)
        return Function(params, self.parse_assignment(), expression_body=True)

    def parse_params(self) -> List[str]:
        self.expect_punct("(")
        params = []
        while not self.check_punct(")"):
            if not self.check("IDENT"):
                self.error("Expected parameter name")
            params.append(self.advance().value)
            if not self.match_punct(","):
                break
        self.expect_punct(")")
        return params

    def parse_conditional(self) -> Node:
        test = self.parse_nullish()
        if self.match_punct("?"):
            consequent = self.parse_assignment()
            self.expect_punct(":")
            alternate = self.parse_assignment()
            return Conditional(test, consequent, alternate)
        return test

    def parse_nullish(self) -> Node:
        left = self.parse_or()
        while self.match_punct("??"):
            left = Logical("??", left, self.parse_or())
        return left

    def parse_or(self) -> Node:
        left = self.parse_and()
        while self.match_punct("||"):
            left = Logical("||", left, self.parse_and())
        return left

    def parse_and(self) -> Node:
        left = self.parse_equality()
        while self.match_punct("&&"):
            left = Logical("&&", left, self.parse_equality())
        return left

    def parse_equality(self) -> Node:
        left = self.parse_relational()
        while True:
            op = self.match_punct(*_EQUALITY_OPS)
            if op is None:
                return left
            left = Binary(op, left, self.parse_relational())

    def parse_relational(self) -> Node:
        left = self.parse_additive()
        while True:
            op = self.match_punct(*_RELATIONAL_OPS)
            if op is None:
                return left
            left = Binary(op, left, self.parse_additive())

    def parse_additive(self) -> Node:
        left = self.parse_multiplicative()
        while True:
            op = self.match_punct("+", "-")
            if op is None:
                return left
            left = Binary(op, left, self.parse_multiplicative())

    def parse_multiplicative(self) -> Node:
        left = self.parse_exponent()
        while True:
            op = self.match_punct("*", "/", "%")
            if op is None:
                return left
            left = Binary(op, left, self.parse_exponent())

    def parse_exponent(self) -> Node:
        base = self.parse_unary()
        if self.match_punct("**"):
            # Right associative
            return Binary("**", base, self.parse_exponent())
        return base

    def parse_unary(self) -> Node:
        if self.check_punct("++", "--"):
            token = self.advance()
            return Update(token.value, self.update_target(self.parse_unary(), token), prefix=True)
        if self.check_punct("!", "-", "+"):
            op = self.advance().value
            return Unary(op, self.parse_unary())
        if self.check("KEYWORD", "typeof"):
            self.advance()
            return Unary("typeof", self.parse_unary())
        expr = self.parse_postfix()
        if self.check_punct("++", "--") and not self.current.newline_before:
            token = self.advance()
            return Update(token.value, self.update_target(expr, token), prefix=False)
        return expr

    def update_target(self, expr: Node, token: Token) -> Node:
        if not isinstance(expr, (Identifier, Member)):
            raise ExpressionSyntaxError("Invalid update target", token.pos)
        return expr

    def parse_postfix(self) -> Node:
        if self.check("KEYWORD", "new"):
            self.advance()
            callee = self.parse_primary()
            while self.check_punct("."):
                self.advance()
                callee = Member(callee, Literal(self.expect_property_name()))
            args = self.parse_arguments() if self.check_punct("(") else []
            expr: Node = New(callee, args)
        else:
            expr = self.parse_primary()

        has_optional = False
        while True:
            if self.match_punct("."):
                expr = Member(expr, Literal(self.expect_property_name()))
            elif self.match_punct("?."):
                has_optional = True
                if self.check_punct("("):
                    expr = Call(expr, self.parse_arguments(), optional=True)
                elif self.match_punct("["):
                    prop = self.parse_expression()
                    self.expect_punct("]")
                    expr = Member(expr, prop, computed=True, optional=True)
                else:
                    expr = Member(expr, Literal(self.expect_property_name()), optional=True)
            elif self.check_punct("[") and not self.current.newline_before:
                self.advance()
                prop = self.parse_expression()
                self.expect_punct("]")
                expr = Member(expr, prop, computed=True)
            elif self.check_punct("(") and not self.current.newline_before:
                expr = Call(expr, self.parse_arguments())
            else:
                break
        return OptionalChain(expr) if has_optional else expr

    def expect_property_name(self) -> str:
        if self.check("IDENT") or self.check("KEYWORD"):
            return self.advance().value
        self.error("Expected property name")

    def parse_arguments(self) -> List[Node]:
        self.expect_punct("(")
        args = []
        while not self.check_punct(")"):
            args.append(self.parse_assignment())
            if not self.match_punct(","):
                break
        self.expect_punct(")")
        return args

    def parse_primary(self) -> Node:
        token = self.current

        if token.kind == "NUMBER":
            self.advance()
            return Literal(normalize_number(token.value))
        if token.kind == "STRING":
            self.advance()
            return Literal(token.value)
        if token.kind == "TEMPLATE":
            self.advance()
            return self.build_template(token)
        if token.kind == "REGEX":
            self.advance()
            pattern, flags = token.value
            return RegexLiteral(pattern, flags)
        if token.kind == "IDENT":
            self.advance()
            return Identifier(token.value)
        if token.kind == "KEYWORD":
            if token.value in ("true", "false"):
                self.advance()
                return Literal(token.value == "true")
            if token.value == "null":
                self.advance()
                return Literal(None)
            if token.value == "undefined":
                self.advance()
                return Literal(UNDEFINED)
            if token.value == "function":
                self.advance()
                if self.check("IDENT"):
                    self.advance()
                params = self.parse_params()
                return Function(params, self.parse_function_body(), expression_body=False)
        if token.kind == "PUNCT":
            if token.value == "(":
                self.advance()
                expr = self.parse_expression()
                self.expect_punct(")")
                return expr
            if token.value == "[":
                return self.parse_array()
            if token.value == "{":
                return self.parse_object()
        self.error("Unexpected token")

    def parse_array(self) -> ArrayLiteral:
        self.expect_punct("[")
        items = []
        while not self.check_punct("]"):
            items.append(self.parse_assignment())
            if not self.match_punct(","):
                break
        self.expect_punct("]")
        return ArrayLiteral(items)

    def parse_object(self) -> ObjectLiteral:
        self.expect_punct("{")
        properties = []
        while not self.check_punct("}"):
            token = self.current
            if token.kind in ("IDENT", "KEYWORD", "STRING"):
                key = str(self.advance().value)
            elif token.kind == "NUMBER":
                self.advance()
                key = str(normalize_number(token.value))
            else:
                self.error("Expected property key")
            if self.match_punct(":"):
                value = self.parse_assignment()
            elif token.kind == "IDENT":
                # Shorthand {a}
                value = Identifier(key)
            else:
                self.error("Expected ':'")
            properties.append((key, value))
            if not self.match_punct(","):
                break
        self.expect_punct("}")
        return ObjectLiteral(properties)

    def build_template(self, token: Token) -> TemplateLiteral:
        quasis = []
        expressions = []
        for kind, text in token.parts:
            if kind == "str":
                quasis.append(text)
            else:
                sub = Parser(tokenize(text))
                expressions.append(sub.parse_expression())
                if not sub.check("EOF"):
                    sub.error("Unexpected token in template expression")
        return TemplateLiteral(quasis, expressions)


def parse(source: str) -> Program:
    """Tokenize and parse a snippet.

    Raises:
        ExpressionSyntaxError: If the snippet is not valid in the script language.
    """
    return Parser(tokenize(source)).parse()
