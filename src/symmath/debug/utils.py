from typing import Callable

from ..expr import Const, Expr, Symbol


def debug_repr(expr: Expr) -> str:
    """Repr that shows the tree structure, ex: Prod(Const(2), Sine(Symbol('x'))).

    Two exprs with the same repr can still be different trees; two exprs with the same debug_repr can't.
    """
    if isinstance(expr, Const):
        return f"Const({expr.value!r})"
    if isinstance(expr, Symbol):
        return f"Symbol({expr.name!r})"
    return f"{expr.__class__.__name__}(" + ", ".join(debug_repr(c) for c in expr.children()) + ")"


def print_tree(root: Expr, func: Callable[[str], None] = print, _depth: int = 0) -> None:
    """Print one line per node, indented by depth, with its cached metrics.

    func: where each line goes. print by default; pass list.append to collect them.
    """

    def _label(expr: Expr) -> str:
        if isinstance(expr, (Const, Symbol)):
            return repr(expr)
        return expr.__class__.__name__

    def _wrap(string: str, num: int) -> str:
        if len(string) > num:
            return string[: num - 3] + "..."
        return string + " " * (num - len(string))

    metrics = f"[h={root.height} n={root.size} c={root.complexity}]"
    value = f" = {root.value}" if root.is_constant and not isinstance(root, Const) else ""
    func(_wrap("  " * _depth + _label(root), 40) + f" {metrics}{value}")
    for child in root.children():
        print_tree(child, func=func, _depth=_depth + 1)
