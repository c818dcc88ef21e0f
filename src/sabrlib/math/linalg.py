"""
Dense linear solves in Decimal arithmetic.

Gaussian elimination with partial pivoting. Columns whose best pivot is
numerically zero are skipped rather than treated as an error: for the
Levenberg-Marquardt normal equations a degenerate direction simply
contributes no update.
"""

from decimal import Decimal
from typing import List, Sequence

PIVOT_TOLERANCE = Decimal("0.0000000001")

Matrix = Sequence[Sequence[Decimal]]
Vector = Sequence[Decimal]


def solve_linear_system(
    a: Matrix,
    b: Vector,
    pivot_tolerance: Decimal = PIVOT_TOLERANCE
) -> List[Decimal]:
    """
    Solve A x = b for a square system.

    Args:
        a: n x n coefficient matrix (not modified)
        b: Right-hand side of length n (not modified)
        pivot_tolerance: Pivots with |p| below this are treated as zero

    Returns:
        Solution vector x; components along degenerate directions are zero
    """
    n = len(b)
    if len(a) != n or any(len(row) != n for row in a):
        raise ValueError(f"Matrix must be {n}x{n} to match right-hand side of length {n}")

    zero = Decimal(0)
    aug = [list(a[i]) + [b[i]] for i in range(n)]

    # Forward elimination
    for col in range(n):
        max_row = col
        max_val = abs(aug[col][col])
        for row in range(col + 1, n):
            v = abs(aug[row][col])
            if v > max_val:
                max_val = v
                max_row = row
        if max_row != col:
            aug[col], aug[max_row] = aug[max_row], aug[col]

        pivot = aug[col][col]
        if abs(pivot) < pivot_tolerance:
            continue

        for row in range(col + 1, n):
            factor = aug[row][col] / pivot
            if factor == zero:
                continue
            for j in range(col, n + 1):
                aug[row][j] -= factor * aug[col][j]

    # Back substitution
    x = [zero] * n
    for i in range(n - 1, -1, -1):
        total = aug[i][n]
        for j in range(i + 1, n):
            total -= aug[i][j] * x[j]
        diag = aug[i][i]
        if abs(diag) > pivot_tolerance:
            x[i] = total / diag

    return x


def solve_3x3(a: Matrix, b: Vector) -> List[Decimal]:
    """
    Solve a 3x3 system A x = b (the LM normal equations).

    Args:
        a: 3x3 matrix
        b: Length-3 vector

    Returns:
        Length-3 solution
    """
    if len(b) != 3:
        raise ValueError(f"solve_3x3 expects a length-3 right-hand side, got {len(b)}")
    return solve_linear_system(a, b)


__all__ = ["PIVOT_TOLERANCE", "solve_linear_system", "solve_3x3"]
