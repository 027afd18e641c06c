"""
Database models for the shell registry.

This module defines SQLAlchemy ORM models for shell descriptors and
their sub-resources.

Models:
- ShellDescriptor: A registered shell, owned by the tenant that created it
- SpecificAssetId: Identifying attribute other tenants can look up by value
- SpecificAssetIdGrant: One tenant (or the public wildcard) allowed to see
  a SpecificAssetId
- SubmodelDescriptor: Sub-resource descriptor of a shell
"""

from sqlalchemy import (
    Boolean, Column, String, DateTime, Integer, ForeignKey, Index,
    UniqueConstraint, event
)
from sqlalchemy import JSON
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

from security.policy.projection import ShellRecord
from security.policy.visibility import IdentifyingAttribute

Base = declarative_base()


class ShellDescriptor(Base):
    """
    A shell descriptor.

    Attributes:
        id: Globally unique shell identifier (client supplied)
        id_short: Short display name
        description: List of {language, text} entries
        display_name: List of {language, text} entries
        global_asset_id: Global external identifier of the asset
        asset_kind: Instance / Type / NotApplicable
        asset_type: Free-form asset type
        owner_tenant_id: Tenant that created the shell. Written once.
        created_at: Creation timestamp
        updated_at: Last modification timestamp

    Relationships:
        specific_asset_ids: Identifying attributes, ordered by position
        submodel_descriptors: Submodel descriptors, ordered by position
    """

    __tablename__ = "shell_descriptors"

    id = Column(String(2048), primary_key=True, doc="Shell identifier")

    id_short = Column(String(128), nullable=True)
    description = Column(JSON, nullable=True, default=lambda: [])
    display_name = Column(JSON, nullable=True, default=lambda: [])
    global_asset_id = Column(String(2048), nullable=True)
    asset_kind = Column(String(32), nullable=True)
    asset_type = Column(String(2048), nullable=True)

    owner_tenant_id = Column(
        String(255),
        nullable=False,
        index=True,
        doc="Tenant that created this shell"
    )

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    specific_asset_ids = relationship(
        "SpecificAssetId",
        back_populates="shell",
        cascade="all, delete-orphan",
        order_by="SpecificAssetId.position",
        lazy="selectin",
    )

    submodel_descriptors = relationship(
        "SubmodelDescriptor",
        back_populates="shell",
        cascade="all, delete-orphan",
        order_by="SubmodelDescriptor.position",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<ShellDescriptor(id={self.id}, owner={self.owner_tenant_id})>"

    def display_fields(self):
        return {
            'id_short': self.id_short,
            'description': self.description or None,
            'display_name': self.display_name or None,
            'global_asset_id': self.global_asset_id,
            'asset_kind': self.asset_kind,
            'asset_type': self.asset_type,
        }

    def to_record(self) -> ShellRecord:
        """Snapshot this row for the policy core"""
        return ShellRecord(
            id=self.id,
            owner_tenant_id=self.owner_tenant_id,
            display_fields=self.display_fields(),
            submodel_descriptors=tuple(s.to_dict() for s in self.submodel_descriptors),
            specific_asset_ids=tuple(a.to_attribute() for a in self.specific_asset_ids),
        )


class SpecificAssetId(Base):
    """
    Identifying attribute of a shell.

    `has_grant` distinguishes "no externalSubjectId" (closed, owner only)
    from a grant list; a grant list is never empty.
    """

    __tablename__ = "specific_asset_ids"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    shell_id = Column(
        String(2048),
        ForeignKey("shell_descriptors.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
        index=True
    )
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    value = Column(String(2048), nullable=False)
    has_grant = Column(Boolean, nullable=False, default=False)

    shell = relationship("ShellDescriptor", back_populates="specific_asset_ids")
    grants = relationship(
        "SpecificAssetIdGrant",
        back_populates="specific_asset_id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        # Lookup by name/value is the hot path
        Index('idx_asset_name_value', name, value),
    )

    def __repr__(self):
        return f"<SpecificAssetId(name={self.name}, value={self.value})>"

    def to_attribute(self) -> IdentifyingAttribute:
        grants = [g.tenant_id for g in self.grants] if self.has_grant else None
        return IdentifyingAttribute.create(self.name, self.value, grants)


class SpecificAssetIdGrant(Base):
    """One entry of a SpecificAssetId's externalSubjectId"""

    __tablename__ = "specific_asset_id_grants"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    asset_pk = Column(
        Integer,
        ForeignKey("specific_asset_ids.pk", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    tenant_id = Column(String(255), nullable=False)

    specific_asset_id = relationship("SpecificAssetId", back_populates="grants")

    __table_args__ = (
        Index('idx_grant_asset_tenant', asset_pk, tenant_id),
    )


class SubmodelDescriptor(Base):
    """Submodel descriptor registered under a shell"""

    __tablename__ = "submodel_descriptors"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    shell_id = Column(
        String(2048),
        ForeignKey("shell_descriptors.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
        index=True
    )
    position = Column(Integer, nullable=False, default=0)
    submodel_id = Column(String(2048), nullable=False)
    id_short = Column(String(128), nullable=True)
    description = Column(JSON, nullable=True, default=lambda: [])
    semantic_id = Column(JSON, nullable=True)
    endpoints = Column(JSON, nullable=True, default=lambda: [])

    shell = relationship("ShellDescriptor", back_populates="submodel_descriptors")

    __table_args__ = (
        UniqueConstraint('shell_id', 'submodel_id', name='uq_shell_submodel'),
    )

    def __repr__(self):
        return f"<SubmodelDescriptor(id={self.submodel_id}, shell={self.shell_id})>"

    def to_dict(self):
        return {
            'id': self.submodel_id,
            'id_short': self.id_short,
            'description': self.description or None,
            'semantic_id': self.semantic_id,
            'endpoints': self.endpoints or [],
        }


# ============ Database event listeners ============
@event.listens_for(ShellDescriptor, 'before_update')
def receive_before_update(mapper, connection, target):
    """Automatically update updated_at timestamp"""
    target.updated_at = datetime.utcnow()
