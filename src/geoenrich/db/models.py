"""
Spatial Table Mappings

Read-only mappings of the OSM-derived tables queried by the PostGIS gateway.
All geometries are stored in WGS84 (SRID 4326).
"""
from typing import Optional

from geoalchemy2 import Geometry
from sqlalchemy import BigInteger, Boolean, Float, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.geoenrich.db.base import Base
from src.geoenrich.models.boundary import AdminBoundary
from src.geoenrich.models.transit import TransitLine, TransitMode, TransitStop

SRID_WGS84 = 4326


class AdminBoundaryRecord(Base):
    """
    Administrative boundary polygon.

    Translated names live in `names` as {"en": ..., "es": ...}.
    """

    __tablename__ = "admin_boundaries"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    admin_level: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    names: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    area_sq_km: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    population: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    geom = mapped_column(
        Geometry(geometry_type="MULTIPOLYGON", srid=SRID_WGS84, spatial_index=True),
        nullable=False,
    )

    def to_domain(self) -> AdminBoundary:
        return AdminBoundary(
            id=self.id,
            name=self.name,
            admin_level=self.admin_level,
            names=dict(self.names or {}),
            area_sq_km=self.area_sq_km,
            population=self.population,
        )


class TransitStopRecord(Base):
    """Transit stop or station point."""

    __tablename__ = "transit_stops"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    mode: Mapped[str] = mapped_column(String(32), nullable=False)
    names: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    generic_platform: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    geom = mapped_column(
        Geometry(geometry_type="POINT", srid=SRID_WGS84, spatial_index=True),
        nullable=False,
    )
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (
        Index("idx_transit_stops_mode", "mode"),
    )

    def to_domain(self) -> TransitStop:
        return TransitStop(
            id=self.id,
            name=self.name or "",
            mode=TransitMode.from_tag(self.mode),
            lat=self.lat,
            lon=self.lon,
            names=dict(self.names or {}),
            generic_platform=bool(self.generic_platform),
        )


class TransitLineRecord(Base):
    """Transit route geometry."""

    __tablename__ = "transit_lines"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    ref: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    mode: Mapped[str] = mapped_column(String(32), nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    geom = mapped_column(
        Geometry(geometry_type="MULTILINESTRING", srid=SRID_WGS84, spatial_index=True),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_transit_lines_mode", "mode"),
    )

    def to_domain(self) -> TransitLine:
        return TransitLine(
            id=self.id,
            name=self.name,
            ref=self.ref,
            mode=TransitMode.from_tag(self.mode),
            color=self.color,
        )
