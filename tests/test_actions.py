"""Unit tests for arbitration action validation."""

import pytest

from glossary_merge.glossary.actions import (
    AddEntryAction,
    AddKeyAction,
    DeleteAction,
    NoneAction,
    UpdateAction,
    normalize_actions,
    validate_actions,
)
from glossary_merge.glossary.errors import (
    ActionReferenceError,
    ActionTypeError,
    ArbitrationError,
    StructuralError,
)
from glossary_merge.glossary.models import GlossaryEntry


@pytest.fixture
def conflicts():
    return [
        GlossaryEntry(id=3, keys=["東雲"], value="Shinonome"),
        GlossaryEntry(id=5, keys=["氷姫"], value="Ice Princess"),
    ]


class TestNormalize:
    """Test normalize_actions."""

    def test_single_object_wrapped(self):
        assert normalize_actions({"action": "none"}) == [{"action": "none"}]

    def test_list_passthrough(self):
        raw = [{"action": "none"}, {"action": "add_entry"}]
        assert normalize_actions(raw) == raw

    @pytest.mark.parametrize("parsed", ["none", 3, None, True])
    def test_non_container_rejected(self, parsed):
        with pytest.raises(StructuralError):
            normalize_actions(parsed)

    def test_non_object_item_rejected(self):
        with pytest.raises(StructuralError):
            normalize_actions([{"action": "none"}, "delete"])


class TestValidateActions:
    """Test validate_actions."""

    def test_valid_batch(self, conflicts):
        actions = validate_actions(
            [
                {"action": "update", "id": 3, "data": "Shinonome (東雲) | Nickname: Ice Princess"},
                {"action": "add_key", "id": 3, "data": ["氷姫"]},
                {"action": "delete", "id": 5},
            ],
            conflicts,
        )
        assert isinstance(actions[0], UpdateAction)
        assert isinstance(actions[1], AddKeyAction)
        assert isinstance(actions[2], DeleteAction)
        assert actions[1].data == ["氷姫"]

    def test_single_object(self, conflicts):
        actions = validate_actions({"action": "none"}, conflicts)
        assert len(actions) == 1
        assert isinstance(actions[0], NoneAction)

    def test_add_entry_without_fields(self, conflicts):
        actions = validate_actions([{"action": "add_entry"}], conflicts)
        assert isinstance(actions[0], AddEntryAction)

    def test_empty_list_is_no_actions(self, conflicts):
        assert validate_actions([], conflicts) == []

    def test_missing_action_field(self, conflicts):
        with pytest.raises(StructuralError):
            validate_actions({"id": 3}, conflicts)

    def test_unknown_action(self, conflicts):
        with pytest.raises(StructuralError):
            validate_actions({"action": "merge", "id": 3}, conflicts)

    def test_missing_required_field(self, conflicts):
        with pytest.raises(StructuralError):
            validate_actions({"action": "update", "id": 3}, conflicts)

    @pytest.mark.parametrize(
        "raw",
        [
            {"action": "none", "reason": "same term"},
            {"action": "add_entry", "id": 3},
            {"action": "add_entry", "data": "Shinonome"},
            {"action": "add_entry", "id": None},
            {"action": "delete", "id": 5, "data": "duplicate"},
        ],
    )
    def test_forbidden_fields_rejected(self, conflicts, raw):
        with pytest.raises(StructuralError):
            validate_actions(raw, conflicts)

    def test_unknown_fields_ignored(self, conflicts):
        """Free-text fields next to a valid action do not reject the batch."""
        actions = validate_actions(
            [
                {"action": "update", "id": 3, "data": "NEW", "reason": "better name"},
                {"action": "add_entry", "reason": "distinct concept"},
                {"action": "delete", "id": 5, "note": "duplicate of 3"},
                {"action": "add_key", "id": 3, "data": ["氷姫"], "confidence": 0.9},
            ],
            conflicts,
        )
        assert isinstance(actions[0], UpdateAction)
        assert actions[0].data == "NEW"
        assert isinstance(actions[1], AddEntryAction)
        assert isinstance(actions[2], DeleteAction)
        assert not hasattr(actions[0], "reason")

    def test_error_names_field_of_bad_list_item(self, conflicts):
        with pytest.raises(ActionTypeError, match=r"Action 0 \(add_key\): data:"):
            validate_actions({"action": "add_key", "id": 3, "data": ["ok", 1]}, conflicts)

    def test_id_outside_conflict_set(self, conflicts):
        with pytest.raises(ActionReferenceError):
            validate_actions({"action": "delete", "id": 99}, conflicts)

    def test_one_bad_reference_rejects_batch(self, conflicts):
        with pytest.raises(ActionReferenceError, match="Action 1"):
            validate_actions(
                [{"action": "update", "id": 3, "data": "x"}, {"action": "delete", "id": 4}],
                conflicts,
            )

    @pytest.mark.parametrize(
        "raw",
        [
            {"action": "update", "id": 3, "data": 42},
            {"action": "delete", "id": "3"},
            {"action": "delete", "id": True},
            {"action": "delete", "id": 3.0},
            {"action": "add_key", "id": 3, "data": "氷姫"},
            {"action": "del_key", "id": 3, "data": [1]},
        ],
    )
    def test_wrong_field_types(self, conflicts, raw):
        with pytest.raises(ActionTypeError):
            validate_actions(raw, conflicts)

    def test_errors_share_arbitration_base(self, conflicts):
        with pytest.raises(ArbitrationError):
            validate_actions("not json actions", conflicts)
