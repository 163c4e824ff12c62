"""
Unit tests for the referential action vocabulary.
"""

import pytest

from spot_orm.constraints import ON_DELETE, ON_UPDATE, Constraint
from spot_orm.exceptions import InvalidConstraintError, MetadataError


class TestConstraint:
    """Tests for the Constraint enum."""

    def test_values_are_sql_keywords(self) -> None:
        assert [str(c) for c in Constraint] == ["NO ACTION", "SET NULL", "RESTRICT", "SET DEFAULT", "CASCADE"]

    def test_parse_member(self) -> None:
        assert Constraint.parse(Constraint.CASCADE) is Constraint.CASCADE

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("CASCADE", Constraint.CASCADE),
            ("SET NULL", Constraint.SET_NULL),
            ("SET_NULL", Constraint.SET_NULL),
            ("SET DEFAULT", Constraint.SET_DEFAULT),
            ("NO_ACTION", Constraint.NO_ACTION),
            ("RESTRICT", Constraint.RESTRICT),
        ],
    )
    def test_parse_strings(self, value: str, expected: Constraint) -> None:
        assert Constraint.parse(value) is expected

    @pytest.mark.parametrize(
        "value",
        ["DELETE", "", "SET", None, 1, ["CASCADE"], "cascade", "Set Null", "set_null", "  RESTRICT ", "SET  NULL"],
    )
    def test_parse_rejects_unknown_values(self, value: object) -> None:
        with pytest.raises(InvalidConstraintError) as exc_info:
            Constraint.parse(value)
        assert exc_info.value.value == value

    def test_invalid_constraint_is_metadata_error(self) -> None:
        with pytest.raises(MetadataError):
            Constraint.parse("EXPLODE")

    def test_only_no_action_is_default(self) -> None:
        assert Constraint.NO_ACTION.is_default is True
        assert [c for c in Constraint if c.is_default] == [Constraint.NO_ACTION]

    def test_clause_keys(self) -> None:
        assert ON_UPDATE == "onUpdate"
        assert ON_DELETE == "onDelete"
