"""Search translator: FHIR search parameters to SQL predicates.

Each supported parameter maps to exactly one comparison on an extracted
column, so no query ever has to look inside the stored document. Parameters
combine with AND only. Unknown names, unsupported modifiers and empty values
are ignored; a value that cannot be coerced to the parameter's type is
rejected with InvalidParameterError naming the parameter.
"""

import logging
import math
import re
from collections.abc import Sequence
from datetime import datetime, timedelta

from sqlalchemy import ColumnElement, Date, and_, false, literal, or_

from labflow.core.errors import InvalidParameterError
from labflow.resources import ResourceSchema, SearchParam
from labflow.resources.fhir import parse_partial_datetime, period_end, split_reference
from labflow.schemas.base import SearchParamType

logger = logging.getLogger(__name__)

# Comparison prefixes understood on date and number parameters
_PREFIX = re.compile(r"^(eq|ne|gt|ge|lt|le)?(.*)$")

STRING_MODIFIERS = ("", "contains", "exact")


class SearchTranslator:
    """Builds the WHERE clause for one resource type.

    Usage:
        translator = SearchTranslator(schema)
        predicates = translator.translate([("patient", "P1"), ("status", "final")])
        stmt = select(schema.model).where(*predicates)
    """

    def __init__(self, schema: ResourceSchema) -> None:
        self._schema = schema
        self._model = schema.model

    def translate(self, params: Sequence[tuple[str, str]]) -> list[ColumnElement[bool]]:
        """Translate ordered (name, value) pairs into AND-combined predicates.

        The non-deleted predicate always comes first. A parameter repeated N
        times contributes N predicates.
        """
        predicates: list[ColumnElement[bool]] = [self._model.is_deleted.is_(False)]

        for raw_name, raw_value in params:
            name, _, modifier = raw_name.partition(":")
            param = self._schema.search_param(name)
            if param is None:
                logger.debug(f"Ignoring unknown {self._schema.type_name} search parameter '{raw_name}'")
                continue

            value = raw_value.strip()
            if not value:
                continue

            predicate = self._translate_one(param, modifier, value)
            if predicate is not None:
                predicates.append(predicate)

        return predicates

    def _translate_one(
        self, param: SearchParam, modifier: str, value: str
    ) -> ColumnElement[bool] | None:
        if param.type == SearchParamType.STRING:
            if modifier not in STRING_MODIFIERS:
                logger.debug(f"Ignoring unsupported modifier '{param.name}:{modifier}'")
                return None
            return self._string(param, modifier, value)

        if modifier:
            logger.debug(f"Ignoring unsupported modifier '{param.name}:{modifier}'")
            return None

        if param.type == SearchParamType.TOKEN:
            return self._token(param, value)
        if param.type == SearchParamType.REFERENCE:
            return self._reference(param, value)
        if param.type == SearchParamType.DATE:
            return self._date(param, value)
        if param.type == SearchParamType.NUMBER:
            return self._number(param, value)
        return None

    def _column(self, param: SearchParam):
        return getattr(self._model, param.column)

    def _string(self, param: SearchParam, modifier: str, value: str) -> ColumnElement[bool]:
        column = self._column(param)
        if param.normalize is not None:
            value = param.normalize(value)
        if modifier == "exact":
            return column == value
        # Default and :contains both match a case-insensitive substring
        return column.icontains(value, autoescape=True)

    def _token(self, param: SearchParam, value: str) -> ColumnElement[bool] | None:
        # system|code and |code reduce to the code
        if "|" in value:
            value = value.split("|", 1)[1]
        if not value:
            return None
        if param.normalize is not None:
            value = param.normalize(value)
        if param.allowed is not None and value not in param.allowed:
            raise InvalidParameterError(
                param.name,
                f"Invalid {param.name} value: '{value}'. "
                f"Valid values: {', '.join(param.allowed)}",
            )
        return self._column(param) == value

    def _reference(self, param: SearchParam, value: str) -> ColumnElement[bool]:
        reference_type, resource_id = split_reference(value)
        if reference_type is not None and reference_type != param.target:
            return false()

        column = self._column(param)
        if param.list_column:
            # Membership in a comma-joined id list
            return (literal(",") + column + literal(",")).contains(
                f",{resource_id},", autoescape=True
            )
        return column == resource_id

    def _date(self, param: SearchParam, value: str) -> ColumnElement[bool]:
        prefix, raw = _split_prefix(value)
        try:
            start, precision = parse_partial_datetime(raw)
            end = period_end(start, precision)
        except ValueError:
            raise InvalidParameterError(
                param.name,
                f"Invalid {param.name} date: '{raw}'. Expected format: YYYY-MM-DD",
            ) from None

        column = self._column(param)
        if isinstance(column.type, Date):
            lower_bound, upper_bound = _date_bounds(start, end)
        else:
            lower_bound, upper_bound = start, end

        return _compare_range(column, prefix, lower_bound, upper_bound)

    def _number(self, param: SearchParam, value: str) -> ColumnElement[bool]:
        prefix, raw = _split_prefix(value)
        try:
            number = float(raw)
        except ValueError:
            number = math.nan
        if not math.isfinite(number):
            raise InvalidParameterError(
                param.name,
                f"Invalid number format: '{raw}' for parameter {param.name}",
            )

        column = self._column(param)
        if prefix == "gt":
            return column > number
        if prefix == "ge":
            return column >= number
        if prefix == "lt":
            return column < number
        if prefix == "le":
            return column <= number
        if prefix == "ne":
            return column != number
        return column == number


def _split_prefix(value: str) -> tuple[str, str]:
    match = _PREFIX.match(value)
    if match is None:
        return "eq", value
    return match.group(1) or "eq", match.group(2)


def _date_bounds(start: datetime, end: datetime) -> tuple:
    """Project a [start, end) instant range onto whole calendar days."""
    upper = end.date()
    if end.time() != datetime.min.time():
        upper = upper + timedelta(days=1)
    return start.date(), upper


def _compare_range(column, prefix: str, start, end) -> ColumnElement[bool]:
    """Compare a column with the half-open period [start, end)."""
    if prefix == "gt":
        return column >= end
    if prefix == "ge":
        return column >= start
    if prefix == "lt":
        return column < start
    if prefix == "le":
        return column < end
    if prefix == "ne":
        return or_(column < start, column >= end)
    return and_(column >= start, column < end)
