"""Relationship accessors derived from foreign-key naming.

Associations are views over the query engine: nothing is joined or cached,
and every access scans the related store again.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterator, Mapping

from mini_record.types import RelationshipDefinition, RelationshipKind

if TYPE_CHECKING:
    from mini_record.instance import Record
    from mini_record.schema import Schema


class HasManyCollection:
    """Records of the target type whose foreign key names the owner."""

    def __init__(self, schema: Schema, relationship: RelationshipDefinition, owner: Record) -> None:
        self.schema = schema
        self.relationship = relationship
        self.owner = owner

    @property
    def scope(self) -> dict[str, Any]:
        """Condition selecting the owner's records."""
        return {self.relationship.foreign_key: self.owner.id}

    def all(self) -> list[Record]:
        return self.where()

    def where(self, conditions: Mapping[str, Any] | None = None, /, **kwargs: Any) -> list[Record]:
        """Return the owner's records that also match the extra conditions."""
        if self.owner.id is None:
            return []
        merged = dict(conditions or {})
        merged.update(kwargs)
        merged.update(self.scope)
        return self.schema.query.where(self.relationship.target, merged)

    def first(self) -> Record | None:
        matches = self.all()
        return matches[0] if matches else None

    def new(self, attributes: Mapping[str, Any] | None = None, /, **kwargs: Any) -> Record:
        """Build an unsaved target record stamped with the owner's identity."""
        merged = dict(attributes or {})
        merged.update(kwargs)
        merged[self.relationship.foreign_key] = self.owner.id
        return self.schema.model(self.relationship.target).new(merged)

    def create(self, attributes: Mapping[str, Any] | None = None, /, **kwargs: Any) -> Record:
        """Build, stamp and save a target record."""
        return self.new(attributes, **kwargs).save()

    def __iter__(self) -> Iterator[Record]:
        return iter(self.all())

    def __len__(self) -> int:
        return len(self.all())

    def __repr__(self) -> str:
        return (
            f"HasManyCollection({self.relationship.owner}.{self.relationship.name} "
            f"-> {self.relationship.target} where {self.scope})"
        )


class AssociationResolver:
    """Resolves relationship accessors on records."""

    def __init__(self, schema: Schema) -> None:
        self.schema = schema

    def resolve(self, owner: Record, relationship: RelationshipDefinition) -> Any:
        """Return the value of a relationship accessor on ``owner``.

        belongs_to yields a record or None, has_many a collection bound to
        the owner, has_one the first matching record or None.
        """
        if relationship.kind is RelationshipKind.BELONGS_TO:
            return self._belongs_to(owner, relationship)
        elif relationship.kind is RelationshipKind.HAS_MANY:
            return HasManyCollection(self.schema, relationship, owner)
        elif relationship.kind is RelationshipKind.HAS_ONE:
            return self._has_one(owner, relationship)
        raise ValueError(f"Unknown relationship kind: {relationship.kind}")

    def assign(self, owner: Record, relationship: RelationshipDefinition, target: Record | None) -> None:
        """Point a belongs_to relationship at ``target`` (or clear it).

        Only the foreign-key column changes; the owner is not saved.
        """
        if relationship.kind is not RelationshipKind.BELONGS_TO:
            raise AttributeError(
                f"Cannot assign to {relationship.kind.value} '{relationship.name}' "
                f"on '{relationship.owner}'"
            )
        if target is not None and target.type_name != relationship.target:
            raise TypeError(
                f"'{relationship.name}' expects a {relationship.target} record, "
                f"got {target.type_name}"
            )
        owner[relationship.foreign_key] = None if target is None else target.id

    def _belongs_to(self, owner: Record, relationship: RelationshipDefinition) -> Record | None:
        foreign_key = owner[relationship.foreign_key]
        if foreign_key is None or foreign_key == "":
            return None
        return self.schema.query.find(relationship.target, foreign_key)

    def _has_one(self, owner: Record, relationship: RelationshipDefinition) -> Record | None:
        if owner.id is None:
            return None
        matches = self.schema.query.where(
            relationship.target, {relationship.foreign_key: owner.id}
        )
        return matches[0] if matches else None
