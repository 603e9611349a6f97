"""Staff profile and its per-role scope assignments.

Raw assignment payloads come in several shapes, depending on which screen
wrote them::

    {"majors": ["Science", ...]}                         # plain names
    {"majors": [{"name": "Science", "groups": [          # scope-selector tree
        {"name": "G1", "classes": [
            {"name": "Grade 10", "sections": ["A", "B"]}]}]}]}
    {"classes": [{"major": ..., "group_desc": ..., "class_desc": ...,
                  "section_name": ...}, ...]}
    {"subject_id": "subj-1"}                             # or "subjectId"
    [{"major": ..., "group_desc": ..., ...}, ...]        # assignment rows

``parse_assignment`` folds all of them into one ``ScopeAssignment``.
Anything else raises ``InvalidScopeError``; unknown shapes are never
treated as "no restriction".

A scope-selector major with no groups grants the whole major.  Once any
group is picked, the major grants only the complete
major/group/class/section paths below it, and a selection with none is
rejected.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from schoolhub.models.scope import ClassTuple

logger = logging.getLogger(__name__)


class InvalidScopeError(ValueError):
    pass


class _ClassIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    major: str = Field(min_length=1)
    group: str = Field(min_length=1, validation_alias=AliasChoices("group_desc", "group"))
    class_desc: str = Field(min_length=1, validation_alias=AliasChoices("class_desc", "class"))
    section: str = Field(min_length=1, validation_alias=AliasChoices("section_name", "section"))


class _ClassNodeIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    sections: list[str] = []


class _GroupNodeIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    classes: list[_ClassNodeIn] = []


class _MajorNodeIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    groups: list[_GroupNodeIn] = []

    def class_paths(self) -> list[ClassTuple]:
        return [
            ClassTuple(self.name, group.name, cls.name, section)
            for group in self.groups
            for cls in group.classes
            for section in cls.sections
            if section
        ]


# Remote ids may be integers (bigint primary keys).
_SubjectId = Union[str, int, None]


class _AssignmentIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    majors: list[Union[str, _MajorNodeIn]] = []
    classes: list[_ClassIn] = []
    subject_id: _SubjectId = Field(
        default=None, validation_alias=AliasChoices("subject_id", "subjectId")
    )


class _AssignmentRowIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    major: str | None = None
    group_desc: str | None = None
    class_desc: str | None = None
    section_name: str | None = None
    subject_id: _SubjectId = None


_ROWS = TypeAdapter(list[_AssignmentRowIn])


@dataclass(frozen=True, slots=True)
class ScopeAssignment:
    majors: tuple[str, ...] = ()
    classes: tuple[ClassTuple, ...] = ()
    subject_id: str | None = None

    def is_empty(self) -> bool:
        return not (self.majors or self.classes or self.subject_id)


def _dedupe(values) -> tuple:
    return tuple(dict.fromkeys(values))


def _subject(value: str | int | None) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _from_rows(rows: list[_AssignmentRowIn]) -> ScopeAssignment:
    majors: list[str] = []
    classes: list[ClassTuple] = []
    subject_id: str | None = None
    for row in rows:
        if row.major and row.group_desc and row.class_desc and row.section_name:
            classes.append(
                ClassTuple(row.major, row.group_desc, row.class_desc, row.section_name)
            )
        elif row.major:
            majors.append(row.major)
        if subject_id is None:
            subject_id = _subject(row.subject_id)
    return ScopeAssignment(
        majors=_dedupe(majors), classes=_dedupe(classes), subject_id=subject_id
    )


def _from_mapping(parsed: _AssignmentIn) -> ScopeAssignment:
    majors: list[str] = []
    classes = [
        ClassTuple(c.major, c.group, c.class_desc, c.section) for c in parsed.classes
    ]
    for node in parsed.majors:
        if isinstance(node, str):
            if node:
                majors.append(node)
        elif not node.groups:
            majors.append(node.name)
        else:
            # Partial branches (a group with no class, a class with no
            # section) grant nothing.
            paths = node.class_paths()
            if not paths:
                raise InvalidScopeError(
                    f"scope selection under major {node.name!r} names no complete class"
                )
            classes.extend(paths)
    return ScopeAssignment(
        majors=_dedupe(majors),
        classes=_dedupe(classes),
        subject_id=_subject(parsed.subject_id),
    )


def parse_assignment(raw: Any) -> ScopeAssignment:
    if raw is None:
        return ScopeAssignment()
    try:
        if isinstance(raw, list):
            return _from_rows(_ROWS.validate_python(raw))
        if isinstance(raw, Mapping):
            return _from_mapping(_AssignmentIn.model_validate(raw))
    except ValidationError as exc:
        raise InvalidScopeError(f"malformed scope assignment: {exc.errors()}") from None
    raise InvalidScopeError(f"unsupported scope assignment type {type(raw).__name__}")


@dataclass(frozen=True, slots=True)
class StaffProfile:
    """Role tags plus parsed assignments.

    ``rejected`` lists the tags whose assignment could not be parsed.
    Those tags grant nothing, and a role whose own assignment was
    rejected is restricted to no students at all.
    """

    principal_id: str
    roles: tuple[str, ...] = ()
    assignments: Mapping[str, ScopeAssignment] = field(default_factory=dict)
    rejected: tuple[str, ...] = ()

    @staticmethod
    def from_raw(
        *,
        principal_id: str,
        roles: list[str] | None,
        assignments: Mapping[str, Any] | None,
    ) -> StaffProfile:
        parsed: dict[str, ScopeAssignment] = {}
        rejected: list[str] = []
        for tag, value in (assignments or {}).items():
            try:
                parsed[str(tag)] = parse_assignment(value)
            except InvalidScopeError as exc:
                logger.warning(
                    "Rejected scope assignment for role=%s principal=%s: %s",
                    tag,
                    principal_id,
                    exc,
                )
                rejected.append(str(tag))
        return StaffProfile(
            principal_id=principal_id,
            roles=tuple(roles or ()),
            assignments=parsed,
            rejected=tuple(rejected),
        )

    def assignment_for(self, role_tag: str) -> ScopeAssignment | None:
        return self.assignments.get(role_tag)

    def is_rejected(self, role_tag: str) -> bool:
        return role_tag in self.rejected
