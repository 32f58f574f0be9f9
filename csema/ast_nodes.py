"""
Untyped expression tree handed to the analyzer.

These nodes come straight from the parser: operators are still spelled as
source tokens and nothing is typed yet. The one exception is `Cast` (and
`SizeOf`), whose type name has already been resolved to a `CType` by the
parser.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from csema.types import CType, NO_QUALIFIERS, Qualifiers


@dataclass
class ASTNode:
    """A node with the 1-based source position of its first token"""
    # no defaults here, so subclasses can declare required fields
    line: int
    column: int


# ============== Expressions ==============

@dataclass
class Expression(ASTNode):
    pass


@dataclass
class Identifier(Expression):
    name: str


@dataclass
class IntLiteral(Expression):
    value: int
    is_unsigned: bool = False
    spelling: str = ""  # as written, e.g. '0x10UL'


@dataclass
class FloatLiteral(Expression):
    value: float


@dataclass
class CharLiteral(Expression):
    """Character constant, escapes already resolved"""
    value: str


@dataclass
class StringLiteral(Expression):
    """String literal; adjacent literals are already concatenated"""
    value: str


@dataclass
class BinaryOp(Expression):
    """`left operator right` for every binary operator except assignment and comma"""
    operator: str
    left: Expression
    right: Expression


@dataclass
class UnaryOp(Expression):
    """Prefix `+ - ! ~ * & ++ --` or postfix `++ --`"""
    operator: str
    operand: Expression
    is_postfix: bool = False


@dataclass
class TernaryOp(Expression):
    condition: Expression
    true_expr: Expression
    false_expr: Expression


@dataclass
class CommaOp(Expression):
    left: Expression
    right: Expression


@dataclass
class Assignment(Expression):
    """`target operator value` where operator is `=` or a compound `op=`"""
    target: Expression
    operator: str
    value: Expression


@dataclass
class FunctionCall(Expression):
    function: Expression
    arguments: List[Expression]


@dataclass
class ArrayAccess(Expression):
    array: Expression
    index: Expression


@dataclass
class MemberAccess(Expression):
    """`object.member`, or `object->member` when through_pointer is set"""
    object: Expression
    member: str
    through_pointer: bool = False


@dataclass
class Cast(Expression):
    type: CType
    expression: Expression


@dataclass
class SizeOf(Expression):
    """`sizeof expr` (operand set) or `sizeof(type)` (type set)"""
    operand: Optional[Expression] = None
    type: Optional[CType] = None


# ============== Declarations ==============

@dataclass
class Declaration(ASTNode):
    """One declarator: the name, its full type and the object's own qualifiers"""
    name: str
    type: CType
    qualifiers: Qualifiers = NO_QUALIFIERS
    storage_class: Optional[str] = None


def _describe(node: ASTNode) -> Tuple[str, Iterable[ASTNode]]:
    name = node.__class__.__name__
    if isinstance(node, BinaryOp):
        return f"{name}({node.operator})", (node.left, node.right)
    if isinstance(node, Assignment):
        return f"{name}({node.operator})", (node.target, node.value)
    if isinstance(node, UnaryOp):
        return f"{name}({node.operator})", (node.operand,)
    if isinstance(node, Cast):
        return f"{name}({node.type})", (node.expression,)
    if isinstance(node, Identifier):
        return f"{name}({node.name})", ()
    if isinstance(node, IntLiteral):
        return f"{name}({node.spelling or node.value})", ()
    if isinstance(node, (FloatLiteral, CharLiteral, StringLiteral)):
        return f"{name}({node.value!r})", ()
    return name, ()


def print_ast(node: ASTNode, indent: int = 0) -> str:
    """Render a tree one node per line, children indented by two spaces"""
    label, children = _describe(node)
    out = "  " * indent + label + "\n"
    for child in children:
        out += print_ast(child, indent + 1)
    return out
