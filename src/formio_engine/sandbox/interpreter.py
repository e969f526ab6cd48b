"""Tree-walking interpreter for parsed form scripts.

The interpreter only manipulates JSON-like values and the whitelisted objects
from formio_engine.sandbox.builtins. Context data is read-only: scripts may
build and mutate their own arrays and objects, but assigning into ``data`` or
``row`` raises. Every evaluated node costs one step; a run that exceeds the
budget raises ExpressionBudgetExceeded.
"""

import math
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from formio_engine.errors import ExpressionBudgetExceeded, ExpressionRuntimeError
from formio_engine.sandbox import parser as ast
from formio_engine.sandbox.builtins import (
    NUMBER,
    NUMBER_STATICS,
    REGEXP,
    BuiltinFunction,
    JSRegex,
    Namespace,
    ScriptCallable,
    array_method,
    global_bindings,
    is_callable,
    make_regexp,
    number_method,
    power,
    string_method,
)
from formio_engine.sandbox.values import (
    NAN,
    UNDEFINED,
    is_nan,
    is_nullish,
    is_number,
    loose_equals,
    normalize_number,
    strict_equals,
    to_number,
    to_primitive,
    to_string,
    truthy,
)

RESERVED_RESULTS = ("value", "show", "valid")


class _Return(Exception):
    def __init__(self, value: Any):
        self.value = value


class _Break(Exception):
    pass


class _Continue(Exception):
    pass


class _ShortCircuit(Exception):
    """Raised by ``?.`` on a nullish base; caught by the enclosing chain."""


class Scope:
    def __init__(self, parent: Optional["Scope"] = None, is_function: bool = False):
        self.vars: Dict[str, Any] = {}
        self.constants: Set[str] = set()
        self.parent = parent
        self.is_function = is_function or parent is None

    def function_scope(self) -> "Scope":
        """Nearest enclosing function scope, where ``var`` declarations live."""
        scope = self
        while not scope.is_function:
            scope = scope.parent
        return scope

    def find(self, name: str) -> Optional["Scope"]:
        scope: Optional[Scope] = self
        while scope is not None:
            if name in scope.vars:
                return scope
            scope = scope.parent
        return None

    def declare(self, name: str, value: Any, constant: bool = False) -> None:
        self.vars[name] = value
        if constant:
            self.constants.add(name)


class ScriptFunction(ScriptCallable):
    """A function or arrow function defined inside a script."""

    def __init__(self, node: ast.Function, closure: Scope, interpreter: "Interpreter"):
        self.node = node
        self.closure = closure
        self.interpreter = interpreter

    def __call__(self, *args: Any) -> Any:
        scope = Scope(self.closure, is_function=True)
        for index, name in enumerate(self.node.params):
            scope.declare(name, args[index] if index < len(args) else UNDEFINED)
        if self.node.expression_body:
            return self.interpreter.eval(self.node.body, scope)
        try:
            self.interpreter.exec_block(self.node.body.body, scope)
        except _Return as ret:
            return ret.value
        return UNDEFINED


class Interpreter:
    """Executes one Program against a root scope.

    Args:
        bindings: Names bound in the script's root scope (data, row, value...).
        max_steps: Evaluation step budget.
    """

    def __init__(self, bindings: Dict[str, Any], max_steps: int = 10_000):
        self.max_steps = max_steps
        self.steps = 0
        self.globals = Scope()
        for name, value in global_bindings().items():
            self.globals.declare(name, value)
        self.root = Scope(self.globals, is_function=True)
        for name, value in bindings.items():
            self.root.declare(name, value)
        self.assigned: List[str] = []
        self._owned: Set[int] = set()
        self._owned_refs: List[Any] = []

    # Bookkeeping

    def tick(self) -> None:
        self.steps += 1
        if self.steps > self.max_steps:
            raise ExpressionBudgetExceeded(self.max_steps)

    def own(self, container: Any) -> Any:
        # Keep a reference so the id cannot be reused by another object
        self._owned_refs.append(container)
        self._owned.add(id(container))
        return container

    def is_owned(self, container: Any) -> bool:
        return id(container) in self._owned

    # Entry point

    def run(self, program: ast.Program) -> Any:
        """Run the program and return its result (UNDEFINED when none).

        Result precedence: explicit ``return``, then the value of a lone
        expression statement, then the first of ``value``/``show``/``valid``
        assigned during this run.
        """
        single = program.single_expression
        try:
            if single is not None:
                return self.eval(single, self.root)
            self.exec_block(program.body, self.root)
        except _Return as ret:
            return ret.value
        except RecursionError:
            raise ExpressionRuntimeError("Maximum call stack size exceeded")
        for name in RESERVED_RESULTS:
            if name in self.assigned:
                return self.root.vars.get(name, UNDEFINED)
        return UNDEFINED

    # Statements

    def exec_block(self, body: List[ast.Node], scope: Scope) -> None:
        for statement in body:
            self.exec(statement, scope)

    def exec(self, node: ast.Node, scope: Scope) -> None:
        self.tick()
        if isinstance(node, ast.ExprStatement):
            self.eval(node.expr, scope)
        elif isinstance(node, ast.VarDecl):
            target = scope.function_scope() if node.kind == "var" else scope
            for name, init in node.declarations:
                value = UNDEFINED if init is None else self.eval(init, scope)
                if node.kind == "var" and name in target.vars and init is None:
                    continue
                target.declare(name, value, constant=node.kind == "const")
                if target is self.root and name in RESERVED_RESULTS:
                    self.assigned.append(name)
        elif isinstance(node, ast.If):
            if truthy(self.eval(node.test, scope)):
                self.exec(node.consequent, scope)
            elif node.alternate is not None:
                self.exec(node.alternate, scope)
        elif isinstance(node, ast.Return):
            raise _Return(UNDEFINED if node.argument is None else self.eval(node.argument, scope))
        elif isinstance(node, ast.For):
            loop_scope = Scope(scope)
            if node.init is not None:
                self.exec(node.init, loop_scope)
            while node.test is None or truthy(self.eval(node.test, loop_scope)):
                if self.exec_loop_body(node.body, loop_scope):
                    break
                if node.update is not None:
                    self.eval(node.update, loop_scope)
        elif isinstance(node, ast.ForEach):
            for item in self.iterate(node, self.eval(node.iterable, scope)):
                self.tick()
                body_scope = Scope(scope)
                self.bind_loop_variable(node, item, body_scope)
                if self.exec_loop_body(node.body, body_scope):
                    break
        elif isinstance(node, ast.While):
            while truthy(self.eval(node.test, scope)):
                if self.exec_loop_body(node.body, scope):
                    break
        elif isinstance(node, ast.Break):
            raise _Break()
        elif isinstance(node, ast.Continue):
            raise _Continue()
        elif isinstance(node, ast.Block):
            self.exec_block(node.body, Scope(scope))
        else:
            raise ExpressionRuntimeError(f"Unsupported statement {type(node).__name__}")

    def exec_loop_body(self, body: ast.Node, scope: Scope) -> bool:
        """Run one iteration; True when the loop should stop."""
        try:
            self.exec(body, scope)
        except _Break:
            return True
        except _Continue:
            pass
        return False

    def iterate(self, node: ast.ForEach, iterable: Any) -> Iterator[Any]:
        if node.each == "in":
            # Enumerable keys; anything without keys yields nothing
            if isinstance(iterable, dict):
                yield from list(iterable.keys())
            elif isinstance(iterable, (list, str)):
                yield from (str(index) for index in range(len(iterable)))
            return
        if isinstance(iterable, str):
            yield from iterable
        elif isinstance(iterable, list):
            # Re-read the length each step so pushes during the loop are seen
            index = 0
            while index < len(iterable):
                yield iterable[index]
                index += 1
        else:
            raise ExpressionRuntimeError(f"{self.describe(node.iterable)} is not iterable")

    def bind_loop_variable(self, node: ast.ForEach, item: Any, body_scope: Scope) -> None:
        if node.kind in ("let", "const"):
            body_scope.declare(node.name, item, constant=node.kind == "const")
        elif node.kind == "var":
            target = body_scope.function_scope()
            target.declare(node.name, item)
            if target is self.root and node.name in RESERVED_RESULTS:
                self.assigned.append(node.name)
        else:
            self.store_variable(node.name, item, body_scope.find(node.name))

    # Expressions

    def eval(self, node: ast.Node, scope: Scope) -> Any:
        self.tick()
        method = getattr(self, f"eval_{type(node).__name__}", None)
        if method is None:
            raise ExpressionRuntimeError(f"Unsupported expression {type(node).__name__}")
        return method(node, scope)

    def eval_Literal(self, node: ast.Literal, scope: Scope) -> Any:
        return node.value

    def eval_Identifier(self, node: ast.Identifier, scope: Scope) -> Any:
        owner = scope.find(node.name)
        if owner is None:
            raise ExpressionRuntimeError(f"{node.name} is not defined")
        return owner.vars[node.name]

    def eval_TemplateLiteral(self, node: ast.TemplateLiteral, scope: Scope) -> str:
        pieces = [node.quasis[0]]
        for expr, quasi in zip(node.expressions, node.quasis[1:]):
            pieces.append(to_string(self.eval(expr, scope)))
            pieces.append(quasi)
        return "".join(pieces)

    def eval_RegexLiteral(self, node: ast.RegexLiteral, scope: Scope) -> JSRegex:
        return JSRegex(node.pattern, node.flags)

    def eval_ArrayLiteral(self, node: ast.ArrayLiteral, scope: Scope) -> List[Any]:
        return self.own([self.eval(item, scope) for item in node.items])

    def eval_ObjectLiteral(self, node: ast.ObjectLiteral, scope: Scope) -> Dict[str, Any]:
        return self.own({key: self.eval(value, scope) for key, value in node.properties})

    def eval_Function(self, node: ast.Function, scope: Scope) -> ScriptFunction:
        return ScriptFunction(node, scope, self)

    def eval_OptionalChain(self, node: ast.OptionalChain, scope: Scope) -> Any:
        try:
            return self.eval(node.expr, scope)
        except _ShortCircuit:
            return UNDEFINED

    def eval_Member(self, node: ast.Member, scope: Scope) -> Any:
        obj = self.eval(node.obj, scope)
        if node.optional and is_nullish(obj):
            raise _ShortCircuit()
        return self.get_member(obj, self.property_key(node, scope))

    def eval_Call(self, node: ast.Call, scope: Scope) -> Any:
        if isinstance(node.callee, ast.Member):
            obj = self.eval(node.callee.obj, scope)
            if node.callee.optional and is_nullish(obj):
                raise _ShortCircuit()
            fn = self.get_member(obj, self.property_key(node.callee, scope))
        else:
            fn = self.eval(node.callee, scope)
        if node.optional and is_nullish(fn):
            raise _ShortCircuit()
        args = [self.eval(arg, scope) for arg in node.args]
        if not is_callable(fn):
            raise ExpressionRuntimeError(f"{self.describe(node.callee)} is not a function")
        return fn(*args)

    def eval_New(self, node: ast.New, scope: Scope) -> Any:
        constructor = self.eval(node.callee, scope)
        if constructor is not REGEXP:
            raise ExpressionRuntimeError(f"{self.describe(node.callee)} is not a constructor")
        args = [self.eval(arg, scope) for arg in node.args]
        return make_regexp(*args)

    def eval_Unary(self, node: ast.Unary, scope: Scope) -> Any:
        if node.op == "typeof":
            if isinstance(node.operand, ast.Identifier) and scope.find(node.operand.name) is None:
                return "undefined"
            return self.type_of(self.eval(node.operand, scope))
        operand = self.eval(node.operand, scope)
        if node.op == "!":
            return not truthy(operand)
        number = to_number(to_primitive(operand))
        if node.op == "-":
            return normalize_number(-number)
        return number

    def eval_Binary(self, node: ast.Binary, scope: Scope) -> Any:
        left = self.eval(node.left, scope)
        right = self.eval(node.right, scope)
        return self.binary(node.op, left, right)

    def eval_Logical(self, node: ast.Logical, scope: Scope) -> Any:
        left = self.eval(node.left, scope)
        if node.op == "&&":
            return self.eval(node.right, scope) if truthy(left) else left
        if node.op == "||":
            return left if truthy(left) else self.eval(node.right, scope)
        return self.eval(node.right, scope) if is_nullish(left) else left

    def eval_Conditional(self, node: ast.Conditional, scope: Scope) -> Any:
        if truthy(self.eval(node.test, scope)):
            return self.eval(node.consequent, scope)
        return self.eval(node.alternate, scope)

    def eval_Assign(self, node: ast.Assign, scope: Scope) -> Any:
        if isinstance(node.target, ast.Identifier):
            name = node.target.name
            owner = scope.find(name)
            if node.op == "=":
                value = self.eval(node.value, scope)
            else:
                if owner is None:
                    raise ExpressionRuntimeError(f"{name} is not defined")
                value = self.binary(node.op[:-1], owner.vars[name], self.eval(node.value, scope))
            return self.store_variable(name, value, owner)

        obj, key = self.writable_member(node.target, scope)
        if node.op == "=":
            value = self.eval(node.value, scope)
        else:
            value = self.binary(node.op[:-1], self.get_member(obj, key), self.eval(node.value, scope))
        self.set_member(obj, key, value)
        return value

    def eval_Update(self, node: ast.Update, scope: Scope) -> Any:
        delta = 1 if node.op == "++" else -1
        if isinstance(node.target, ast.Identifier):
            name = node.target.name
            owner = scope.find(name)
            if owner is None:
                raise ExpressionRuntimeError(f"{name} is not defined")
            old = normalize_number(to_number(to_primitive(owner.vars[name])))
            new = normalize_number(old + delta)
            self.store_variable(name, new, owner)
        else:
            obj, key = self.writable_member(node.target, scope)
            old = normalize_number(to_number(to_primitive(self.get_member(obj, key))))
            new = normalize_number(old + delta)
            self.set_member(obj, key, new)
        return new if node.prefix else old

    def store_variable(self, name: str, value: Any, owner: Optional[Scope]) -> Any:
        if owner is None or owner is self.globals:
            # Undeclared assignment creates a snippet-local variable
            owner = self.root
        if name in owner.constants:
            raise ExpressionRuntimeError(f"Assignment to constant variable '{name}'")
        owner.vars[name] = value
        if owner is self.root and name in RESERVED_RESULTS:
            self.assigned.append(name)
        return value

    def writable_member(self, target: ast.Member, scope: Scope) -> Tuple[Any, Any]:
        obj = self.eval(target.obj, scope)
        key = self.property_key(target, scope)
        if not isinstance(obj, (dict, list)) or not self.is_owned(obj):
            raise ExpressionRuntimeError(
                f"Cannot assign to property '{to_string(key)}' of read-only value"
            )
        return obj, key

    # Operators

    def binary(self, op: str, left: Any, right: Any) -> Any:
        if op == "===":
            return strict_equals(left, right)
        if op == "!==":
            return not strict_equals(left, right)
        if op == "==":
            return loose_equals(left, right)
        if op == "!=":
            return not loose_equals(left, right)
        if op in ("<", ">", "<=", ">="):
            return self.compare(op, left, right)
        if op == "+":
            left, right = to_primitive(left), to_primitive(right)
            if isinstance(left, str) or isinstance(right, str):
                return to_string(left) + to_string(right)
            return normalize_number(to_number(left) + to_number(right))
        x, y = to_number(to_primitive(left)), to_number(to_primitive(right))
        if op == "-":
            return normalize_number(x - y)
        if op == "*":
            return normalize_number(x * y)
        if op == "/":
            return self.divide(x, y)
        if op == "%":
            if y == 0 or is_nan(x) or is_nan(y) or math.isinf(x):
                return NAN
            if math.isinf(y):
                return x
            return normalize_number(math.fmod(x, y))
        if op == "**":
            return power(x, y)
        raise ExpressionRuntimeError(f"Unsupported operator {op}")

    @staticmethod
    def divide(x: Any, y: Any) -> Any:
        if is_nan(x) or is_nan(y):
            return NAN
        if y == 0:
            if x == 0:
                return NAN
            negative = (x < 0) != (math.copysign(1.0, y) < 0)
            return -math.inf if negative else math.inf
        return normalize_number(x / y)

    @staticmethod
    def compare(op: str, left: Any, right: Any) -> bool:
        left, right = to_primitive(left), to_primitive(right)
        if not (isinstance(left, str) and isinstance(right, str)):
            left, right = to_number(left), to_number(right)
            if is_nan(left) or is_nan(right):
                return False
        if op == "<":
            return left < right
        if op == ">":
            return left > right
        if op == "<=":
            return left <= right
        return left >= right

    # Members

    def property_key(self, node: ast.Member, scope: Scope) -> Any:
        if node.computed:
            return self.eval(node.prop, scope)
        return node.prop.value

    def get_member(self, obj: Any, key: Any) -> Any:
        if is_nullish(obj):
            raise ExpressionRuntimeError(
                f"Cannot read properties of {to_string(obj)} (reading '{to_string(key)}')"
            )
        if isinstance(obj, dict):
            return obj.get(to_string(key), UNDEFINED)
        if isinstance(obj, list):
            index = self.as_index(key)
            if index is not None:
                return obj[index] if index < len(obj) else UNDEFINED
            name = to_string(key)
            if name == "length":
                return len(obj)
            method = array_method(obj, name, self.own, mutable=self.is_owned(obj))
            return method if method is not None else UNDEFINED
        if isinstance(obj, str):
            index = self.as_index(key)
            if index is not None:
                return obj[index] if index < len(obj) else UNDEFINED
            name = to_string(key)
            if name == "length":
                return len(obj)
            method = string_method(obj, name)
            return method if method is not None else UNDEFINED
        if is_number(obj):
            method = number_method(obj, to_string(key))
            return method if method is not None else UNDEFINED
        if isinstance(obj, Namespace):
            return obj.get(to_string(key))
        if obj is NUMBER:
            return NUMBER_STATICS.get(to_string(key), UNDEFINED)
        if isinstance(obj, JSRegex):
            name = to_string(key)
            if name == "test":
                return BuiltinFunction("test", obj.test)
            if name == "source":
                return obj.source
            if name == "flags":
                return obj.flags
            return UNDEFINED
        return UNDEFINED

    def set_member(self, obj: Any, key: Any, value: Any) -> None:
        if isinstance(obj, dict):
            obj[to_string(key)] = value
            return
        index = self.as_index(key)
        if index is None:
            raise ExpressionRuntimeError(f"Cannot set property '{to_string(key)}' of array")
        while len(obj) <= index:
            obj.append(UNDEFINED)
        obj[index] = value

    @staticmethod
    def as_index(key: Any) -> Optional[int]:
        if isinstance(key, bool):
            return None
        if isinstance(key, int) and key >= 0:
            return key
        if isinstance(key, float) and key.is_integer() and key >= 0:
            return int(key)
        if isinstance(key, str) and key.isdigit():
            return int(key)
        return None

    @staticmethod
    def type_of(value: Any) -> str:
        if value is UNDEFINED:
            return "undefined"
        if isinstance(value, bool):
            return "boolean"
        if is_number(value):
            return "number"
        if isinstance(value, str):
            return "string"
        if isinstance(value, ScriptCallable):
            return "function"
        return "object"

    @staticmethod
    def describe(node: ast.Node) -> str:
        if isinstance(node, ast.Identifier):
            return node.name
        if isinstance(node, ast.Member) and not node.computed:
            return f"{Interpreter.describe(node.obj)}.{node.prop.value}"
        return "expression"
