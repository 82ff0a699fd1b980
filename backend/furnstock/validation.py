from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable


# Maximum money amount: 99,99,99,999.99 (9,999,999,999 cents)
MAX_AMOUNT_CENTS = 9_999_999_999
# Basis points ceiling for a GST rate (100%)
MAX_RATE_BPS = 10_000


class ValidationError(ValueError):
    """
    Malformed input or a quantity ceiling violation.

    `violations` lists every offending line/field so a caller can fix all of
    them in one pass.
    """
    def __init__(self, message: str, violations: list[dict] | None = None):
        super().__init__(message)
        self.violations = violations or []


class InsufficientStockError(Exception):
    """A deduct or transfer source lacks the required quantity."""
    def __init__(self, message: str, violations: list[dict] | None = None):
        super().__init__(message)
        self.violations = violations or []


class MissingContextError(Exception):
    """No active company scope, or the referenced record does not exist."""


@dataclass
class OperationResult:
    """
    Outcome of a batch mutation.

    Truthy on success. On failure `violations` carries every rejected line
    and nothing was changed.
    """
    ok: bool
    violations: list[dict] = field(default_factory=list)
    entity: Any = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, entity: Any = None) -> "OperationResult":
        return cls(ok=True, entity=entity)

    @classmethod
    def failure(cls, violations: list[dict], entity: Any = None) -> "OperationResult":
        return cls(ok=False, violations=list(violations), entity=entity)


@dataclass(frozen=True)
class QuantityLine:
    product_id: int
    qty: int


def coerce_int(value: Any, field_name: str) -> int:
    """
    Strict integer coercion.

    Rejects bools, floats, scientific notation and decimal strings rather than
    truncating them.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{field_name} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field_name} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field_name} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field_name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field_name} must be an integer")
    raise ValidationError(f"{field_name} must be an integer")


def coerce_non_negative_int(value: Any, field_name: str) -> int:
    number = coerce_int(value, field_name)
    if number < 0:
        raise ValidationError(f"{field_name} must be >= 0")
    return number


def coerce_positive_int(value: Any, field_name: str) -> int:
    number = coerce_int(value, field_name)
    if number <= 0:
        raise ValidationError(f"{field_name} must be > 0")
    return number


def coerce_amount_cents(value: Any, field_name: str) -> int:
    cents = coerce_non_negative_int(value, field_name)
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field_name} cannot exceed {MAX_AMOUNT_CENTS}")
    return cents


def coerce_rate_bps(value: Any, field_name: str) -> int:
    bps = coerce_non_negative_int(value, field_name)
    if bps > MAX_RATE_BPS:
        raise ValidationError(f"{field_name} cannot exceed {MAX_RATE_BPS}")
    return bps


def apply_rate_bps(amount_cents: int, rate_bps: int) -> int:
    """Tax on an amount, rounded half-up to the cent."""
    return (amount_cents * rate_bps + 5_000) // 10_000


def require_text(value: Any, field_name: str, *, max_length: int = 255) -> str:
    if value is None:
        raise ValidationError(f"{field_name} is required")
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{field_name} cannot be blank")
    if len(text) > max_length:
        raise ValidationError(f"{field_name} exceeds max length {max_length}")
    return text


def optional_text(value: Any, *, max_length: int = 255) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text[:max_length] if text else None


def violation(reason: str, message: str, **extra) -> dict:
    row = {"reason": reason, "message": message}
    row.update(extra)
    return row


def parse_quantity_lines(
    raw_lines: Any,
    *,
    known_product_ids: Iterable[int],
) -> tuple[list[QuantityLine], list[dict]]:
    """
    Parse a caller supplied list of {product_id, qty} lines.

    Returns (lines, violations). Zero-quantity lines are dropped. Every
    malformed line, unknown product and duplicate product is reported;
    parsing never stops at the first problem.

    Raises:
        ValidationError: if `raw_lines` is not a list at all
    """
    if not isinstance(raw_lines, (list, tuple)):
        raise ValidationError("Lines must be a list")

    known = set(known_product_ids)
    seen: set[int] = set()
    lines: list[QuantityLine] = []
    violations: list[dict] = []

    for index, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            violations.append(violation("malformed", "Line must be an object", line=index))
            continue

        raw_qty = raw.get("qty", raw.get("quantity"))
        try:
            product_id = coerce_int(raw.get("product_id"), "product_id")
            qty = coerce_non_negative_int(raw_qty, "qty")
        except ValidationError as exc:
            violations.append(violation(
                "malformed", str(exc), line=index, product_id=raw.get("product_id"),
            ))
            continue

        if product_id not in known:
            violations.append(violation(
                "unknown_product",
                f"Product {product_id} is not on this document",
                line=index,
                product_id=product_id,
            ))
            continue

        if product_id in seen:
            violations.append(violation(
                "duplicate_line",
                f"Product {product_id} appears more than once",
                line=index,
                product_id=product_id,
            ))
            continue
        seen.add(product_id)

        if qty == 0:
            continue
        lines.append(QuantityLine(product_id=product_id, qty=qty))

    if not lines and not violations:
        violations.append(violation("empty", "No line carries a positive quantity"))

    return lines, violations
