"""
Referential actions for foreign key constraints.

The vocabulary is closed: any value outside :class:`Constraint` is
rejected rather than silently replaced by a default.

Example::

    class Comment(BaseEntity):
        post_id: Annotated[int, Column(on_delete=Constraint.CASCADE)]
"""

from enum import StrEnum
from typing import Any

from .exceptions import InvalidConstraintError


class Constraint(StrEnum):
    """
    Actions usable in ``ON UPDATE`` / ``ON DELETE`` clauses.

    - NO_ACTION: reject the parent mutation if dependent rows exist. Some
      databases defer the check to the end of the statement; MySQL checks
      immediately, so there it behaves like RESTRICT.
    - SET_NULL: set the child foreign key column(s) to NULL. The child
      columns must be nullable.
    - RESTRICT: reject the parent mutation if dependent rows exist. Same
      as omitting the clause on most backends.
    - SET_DEFAULT: set the child foreign key column(s) to their declared
      default. Parsed but rejected by InnoDB.
    - CASCADE: propagate the delete or update to the dependent rows.
    """

    NO_ACTION = "NO ACTION"
    SET_NULL = "SET NULL"
    RESTRICT = "RESTRICT"
    SET_DEFAULT = "SET DEFAULT"
    CASCADE = "CASCADE"

    @classmethod
    def parse(cls, value: Any) -> "Constraint":
        """
        Validate a referential action.

        Accepts a member, its exact SQL value (``"SET NULL"``) or its
        exact member name (``"SET_NULL"``). Case and spacing must match.

        Raises:
            InvalidConstraintError: For any other value
        """
        if isinstance(value, Constraint):
            return value
        if isinstance(value, str):
            if value in cls.__members__:
                return cls[value]
            try:
                return cls(value)
            except ValueError:
                pass
        raise InvalidConstraintError(value)

    @property
    def is_default(self) -> bool:
        """``NO ACTION`` is what databases apply when no action is declared."""
        return self is Constraint.NO_ACTION


# Keys of FieldIndexSet.constraints
ON_UPDATE = "onUpdate"
ON_DELETE = "onDelete"

__all__ = ["Constraint", "ON_UPDATE", "ON_DELETE"]
