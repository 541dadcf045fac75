"""Arbitration action grammar and its validator.

The arbiter answers with either a single action object or an array of
them::

    {"action": "none"}
    [{"action": "update", "id": 7, "data": "[character] Li Hua (李华)"},
     {"action": "add_key", "id": 7, "data": ["小华"]},
     {"action": "delete", "id": 9}]

A response is accepted only as a whole: one bad action rejects the batch.
Unknown fields such as a free-text "reason" are ignored, except on
``none``, which takes no fields at all.
"""

from collections.abc import Iterable
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
    model_validator,
)

from glossary_merge.glossary.errors import (
    ActionReferenceError,
    ActionTypeError,
    StructuralError,
)
from glossary_merge.glossary.models import GlossaryEntry


class _Action(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    # Fields this action must not carry; any other unknown field is dropped
    forbidden_fields: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def _reject_forbidden_fields(cls, data: Any) -> Any:
        if isinstance(data, dict):
            present = [name for name in cls.forbidden_fields if name in data]
            if present:
                raise ValueError(f"must not have {', '.join(present)}")
        return data


class NoneAction(_Action):
    """Leave the dictionary unchanged."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    action: Literal["none"]


class AddEntryAction(_Action):
    """Append the triggering proposal as a new entry."""

    forbidden_fields = ("id", "data")

    action: Literal["add_entry"]


class DeleteAction(_Action):
    """Remove an entry and its keys."""

    forbidden_fields = ("data",)

    action: Literal["delete"]
    id: StrictInt


class UpdateAction(_Action):
    """Replace an entry's value."""

    action: Literal["update"]
    id: StrictInt
    data: StrictStr


class AddKeyAction(_Action):
    """Add keys to an entry."""

    action: Literal["add_key"]
    id: StrictInt
    data: list[StrictStr]


class DelKeyAction(_Action):
    """Remove keys from an entry."""

    action: Literal["del_key"]
    id: StrictInt
    data: list[StrictStr]


ArbitrationAction = Annotated[
    Union[NoneAction, AddEntryAction, DeleteAction, UpdateAction, AddKeyAction, DelKeyAction],
    Field(discriminator="action"),
]

_action_list_adapter: TypeAdapter[list[ArbitrationAction]] = TypeAdapter(list[ArbitrationAction])


def normalize_actions(parsed: Any) -> list[dict[str, Any]]:
    """Wrap a single action object into a list.

    Raises:
        StructuralError: If the payload is not an object or a list of objects
    """
    if isinstance(parsed, dict):
        return [parsed]
    if not isinstance(parsed, list):
        raise StructuralError(
            f"Expected an action object or array, got {type(parsed).__name__}"
        )
    for i, item in enumerate(parsed):
        if not isinstance(item, dict):
            raise StructuralError(f"Action {i}: expected an object, got {type(item).__name__}")
    return parsed


def _raise_for_validation_error(exc: ValidationError, raw: list[dict[str, Any]]) -> None:
    error = exc.errors()[0]
    loc = error["loc"]
    index = loc[0] if loc and isinstance(loc[0], int) else "?"
    field = next((part for part in loc[2:] if isinstance(part, str)), None)
    name = raw[index].get("action") if isinstance(index, int) else None
    message = f"Action {index} ({name}): {field or 'action'}: {error['msg']}"
    if error["type"].endswith("_type"):
        raise ActionTypeError(message) from exc
    raise StructuralError(message) from exc


def validate_actions(
    parsed: Any, conflicts: Iterable[GlossaryEntry]
) -> list[ArbitrationAction]:
    """Validate a decoded arbitration response against its conflict set.

    Args:
        parsed: Decoded JSON (single action object or array)
        conflicts: Entries the arbiter was shown; the only ids it may touch

    Returns:
        Typed actions, in response order

    Raises:
        StructuralError: Not an action or action array, unknown action, extra fields
        ActionTypeError: A field has the wrong type
        ActionReferenceError: An id is outside the conflict set
    """
    raw = normalize_actions(parsed)
    try:
        actions = _action_list_adapter.validate_python(raw)
    except ValidationError as exc:
        _raise_for_validation_error(exc, raw)

    allowed_ids = {entry.id for entry in conflicts}
    for i, action in enumerate(actions):
        target = getattr(action, "id", None)
        if target is not None and target not in allowed_ids:
            raise ActionReferenceError(
                f"Action {i} ({action.action}): id {target} not in conflict set"
            )
    return actions
