from __future__ import annotations

from collections.abc import Collection, Mapping
from enum import Enum
from typing import Any

from .errors import TranslationError, UnknownFieldError, ValidationError
from .mapper import AttributeMapper


class ComparisonOperator(Enum):
    EQ = "EQ"
    NE = "NE"
    GT = "GT"
    GE = "GE"
    LT = "LT"
    LE = "LE"
    BEGINS_WITH = "BEGINS_WITH"
    BETWEEN = "BETWEEN"
    CONTAINS = "CONTAINS"
    NOT_CONTAINS = "NOT_CONTAINS"
    NULL = "NULL"
    NOT_NULL = "NOT_NULL"
    IN = "IN"

    @property
    def arity(self) -> int | None:
        """Number of comparison values; ``None`` for IN, which takes one or more."""
        if self in {ComparisonOperator.NULL, ComparisonOperator.NOT_NULL}:
            return 0
        if self is ComparisonOperator.BETWEEN:
            return 2
        if self is ComparisonOperator.IN:
            return None
        return 1


class UpdateAction(Enum):
    PUT = "PUT"
    DELETE = "DELETE"
    ADD = "ADD"


CONDITION_OPERATORS: Mapping[str, ComparisonOperator] = {
    "$gt": ComparisonOperator.GT,
    "$gte": ComparisonOperator.GE,
    "$lt": ComparisonOperator.LT,
    "$lte": ComparisonOperator.LE,
    "$begins": ComparisonOperator.BEGINS_WITH,
    "$between": ComparisonOperator.BETWEEN,
}

UPDATE_OPERATORS: Mapping[str, UpdateAction] = {
    "$set": UpdateAction.PUT,
    "$unset": UpdateAction.DELETE,
    "$inc": UpdateAction.ADD,
}

# single-key mappings such as {"NE": 3} or {"IN": [1, 2]} name the native operator directly
_NATIVE_OPERATORS: Mapping[str, ComparisonOperator] = {op.value: op for op in ComparisonOperator}

_SET_TYPES = frozenset({"SS", "NS", "BS"})
_ADDABLE_TYPES = _SET_TYPES | {"N"}


def _is_operator_token(key: Any) -> bool:
    return isinstance(key, str) and key.startswith("$")


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _mapper(mappers: Mapping[str, AttributeMapper], field_name: str) -> AttributeMapper:
    mapper = mappers.get(field_name)
    if mapper is None:
        raise UnknownFieldError(field_name)
    return mapper


def parse_condition(
    field_name: str,
    value: Any,
    *,
    field_type: str | None = None,
) -> tuple[ComparisonOperator, Any]:
    """Split a filter value into its operator and raw operand.

    Scalars default to equality. A single-key mapping whose key is a native
    operator (``{"NE": 3}``, ``{"NULL": True}``) passes that operator through.
    Any other mapping without ``$`` tokens compares as a whole map, which is
    only allowed when ``field_type`` is ``"M"`` (or unknown).
    """
    if not isinstance(value, Mapping):
        return ComparisonOperator.EQ, value

    if not any(_is_operator_token(k) for k in value):
        if len(value) == 1:
            ((token, operand),) = value.items()
            native = _NATIVE_OPERATORS.get(token) if isinstance(token, str) else None
            if native is not None:
                return native, operand
        if field_type not in {None, "M"}:
            raise TranslationError(f"unknown conditional operator for {field_type} field: {field_name}")
        return ComparisonOperator.EQ, value

    if len(value) != 1:
        raise TranslationError(f"exactly one conditional operator expected for field: {field_name}")

    ((token, operand),) = value.items()
    operator = CONDITION_OPERATORS.get(token)
    if operator is None:
        raise TranslationError(f'conditional operator "{token}" is not supported')
    return operator, operand


def _condition_entry(mapper: AttributeMapper, operator: ComparisonOperator, operand: Any) -> dict[str, Any]:
    field_name = mapper.field_name
    if operator.arity == 0:
        if operand is not None and operand is not True:
            raise TranslationError(f"operator {operator.value} takes no comparison value: {field_name}")
        return {"ComparisonOperator": operator.value}

    if operator is ComparisonOperator.IN:
        if not _is_array(operand) or not operand:
            raise TranslationError("IN operator must have a non-empty array as the comparison value")
        values = [mapper.to_db(v) for v in operand]
    elif operator is ComparisonOperator.BETWEEN:
        if not _is_array(operand) or len(operand) != operator.arity:
            raise TranslationError("BETWEEN operator must have an array of two elements as the comparison value")
        values = [mapper.to_db(operand[0]), mapper.to_db(operand[1])]
    elif _is_array(operand):
        raise TranslationError(f"operator {operator.value} does not support array values: {field_name}")
    elif operator in {ComparisonOperator.CONTAINS, ComparisonOperator.NOT_CONTAINS}:
        values = [mapper.element_to_db(operand)]
    else:
        values = [mapper.to_db(operand)]

    return {"AttributeValueList": values, "ComparisonOperator": operator.value}


def translate_conditions(
    conditions: Mapping[str, Any],
    mappers: Mapping[str, AttributeMapper],
) -> dict[str, dict[str, Any]]:
    """Compile a filter such as ``{"age": {"$gte": 21}}`` into native conditions.

    The result is usable as ``KeyConditions``, ``ScanFilter`` or ``Expected``::

        {"age": {"AttributeValueList": [{"N": "21"}], "ComparisonOperator": "GE"}}
    """
    if not isinstance(conditions, Mapping):
        raise ValidationError("conditions must be a mapping")

    out: dict[str, dict[str, Any]] = {}
    for field_name, value in conditions.items():
        mapper = _mapper(mappers, field_name)
        # JSON fields store any structure, so whole-value mappings stay comparable
        field_type = "M" if mapper.definition.json else mapper.type
        operator, operand = parse_condition(field_name, value, field_type=field_type)
        out[mapper.definition.attribute_name] = _condition_entry(mapper, operator, operand)
    return out


def _parse_action(field_name: str, token: Any) -> UpdateAction:
    if isinstance(token, str):
        action = UPDATE_OPERATORS.get(token)
        if action is not None:
            return action
        try:
            return UpdateAction(token.upper())
        except ValueError:
            pass
    raise TranslationError(f'update action "{token}" is not supported for field: {field_name}')


def _update_entry(mapper: AttributeMapper, action: UpdateAction, operand: Any) -> dict[str, Any]:
    field_type = mapper.type
    if action is UpdateAction.DELETE:
        # only set-typed attributes accept a value on DELETE (elements to remove)
        if field_type not in _SET_TYPES or operand is None:
            return {"Action": action.value}
        return {"Action": action.value, "Value": mapper.to_db(operand)}

    if action is UpdateAction.ADD and field_type not in _ADDABLE_TYPES:
        raise TranslationError(f"ADD requires a number or set field: {mapper.field_name}")
    return {"Action": action.value, "Value": mapper.to_db(operand)}


def translate_updates(
    updates: Mapping[str, Any],
    mappers: Mapping[str, AttributeMapper],
    *,
    key_fields: Collection[str] = (),
) -> dict[str, dict[str, Any]]:
    """Compile an update document into native ``AttributeUpdates``.

    ``$set``/``$unset``/``$inc`` apply PUT/DELETE/ADD to every field they
    name. Plain fields take a scalar (PUT) or a single ``{action: operand}``
    entry, e.g. ``{"score": {"ADD": 5}}``.
    """
    if not isinstance(updates, Mapping):
        raise ValidationError("updates must be a mapping")

    planned: list[tuple[str, UpdateAction, Any]] = []
    for key, value in updates.items():
        if _is_operator_token(key):
            action = UPDATE_OPERATORS.get(key)
            if action is None:
                raise TranslationError(f'update operator "{key}" is not supported')
            if not isinstance(value, Mapping):
                raise TranslationError(f"{key} expects a mapping of field to value")
            planned.extend((str(name), action, operand) for name, operand in value.items())
            continue

        if isinstance(value, Mapping):
            if len(value) != 1:
                raise TranslationError(f"exactly one action expected for field: {key}")
            ((token, operand),) = value.items()
            planned.append((key, _parse_action(key, token), operand))
        else:
            planned.append((key, UpdateAction.PUT, value))

    out: dict[str, dict[str, Any]] = {}
    for field_name, action, operand in planned:
        mapper = _mapper(mappers, field_name)
        if field_name in key_fields:
            raise ValidationError(f"cannot update key field: {field_name}")
        attribute_name = mapper.definition.attribute_name
        if attribute_name in out:
            raise TranslationError(f"field is updated more than once: {field_name}")
        out[attribute_name] = _update_entry(mapper, action, operand)

    if not out:
        raise ValidationError("no updates provided")
    return out
