from typing import Any, Iterator

from pydantic import BaseModel


def iter_set_fields(model: BaseModel, prefix: str = "") -> Iterator[tuple[str, Any]]:
    """
    Yield (dotted_path, value) for every field the client actually sent.
    Nested models are walked; their unset fields are skipped as well.
    """
    for name in model.model_fields_set:
        value = getattr(model, name)
        path = f"{prefix}{name}"
        if isinstance(value, BaseModel):
            yield from iter_set_fields(value, prefix=f"{path}.")
        else:
            yield path, value


def build_assignments(
    patch: BaseModel,
    columns: dict[str, str],
    nullable: frozenset[str] = frozenset(),
) -> dict[str, Any]:
    """
    Map the fields present on `patch` to column assignments.

    `columns` maps dotted field paths to column names; paths not listed are
    ignored. A null value only clears a column named in `nullable`.
    """
    assignments = {}
    for path, value in iter_set_fields(patch):
        column = columns.get(path)
        if column is None:
            continue
        if value is None and column not in nullable:
            continue
        assignments[column] = value
    return assignments
