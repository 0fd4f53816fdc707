"""
ORM Models
==========
All SQLAlchemy table definitions for the monitor.

Column notes:
  - JSON columns hold plain lists (expected fields, body fixture keys).  On
    Postgres they are stored as JSON, on SQLite as TEXT.
  - Timestamps carry both a Python-side default and server_default=func.now();
    ordering queries always add the primary key as a tie-breaker because
    SQLite's CURRENT_TIMESTAMP only has second resolution.
  - Every child table uses ON DELETE CASCADE back to its API so removing an
    API row cleans up endpoints, probes and baselines.
"""

import datetime

from sqlalchemy import Column, Integer, String, JSON, Boolean, DateTime, ForeignKey, func, UniqueConstraint
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")
LATENCY_BUCKETS = ("fast", "slow", "timeout", "error")


class Api(Base):
    __tablename__ = "apis"

    id         = Column(Integer, primary_key=True)
    name       = Column(String, nullable=False, unique=True)
    base_url   = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, server_default=func.now())

    endpoints = relationship("Endpoint", back_populates="api", cascade="all, delete-orphan", passive_deletes=True)
    probes    = relationship("Probe",    back_populates="api", cascade="all, delete-orphan", passive_deletes=True)
    baselines = relationship("Baseline", back_populates="api", cascade="all, delete-orphan", passive_deletes=True)


class Endpoint(Base):
    __tablename__ = "endpoints"

    id       = Column(Integer, primary_key=True)
    api_id   = Column(Integer, ForeignKey("apis.id", ondelete="CASCADE"), nullable=False, index=True)
    path     = Column(String, nullable=False)      # As declared, placeholders intact
    method   = Column(String, nullable=False)

    expected_status     = Column(Integer, nullable=False)
    expected_fields     = Column(JSON, nullable=True)
    body_fixture_params = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.datetime.utcnow, server_default=func.now())

    # One contract per (api, path, method)
    __table_args__ = (
        UniqueConstraint("api_id", "path", "method", name="uq_endpoint_api_path_method"),
    )

    api    = relationship("Api", back_populates="endpoints")
    probes = relationship("Probe", back_populates="endpoint", cascade="all, delete-orphan", passive_deletes=True)


class Probe(Base):
    __tablename__ = "probes"

    id          = Column(Integer, primary_key=True)
    api_id      = Column(Integer, ForeignKey("apis.id", ondelete="CASCADE"), nullable=False, index=True)
    endpoint_id = Column(Integer, ForeignKey("endpoints.id", ondelete="CASCADE"), nullable=False, index=True)

    passed         = Column(Boolean, nullable=False, default=False)
    status_code    = Column(Integer, nullable=False, default=0)
    response_type  = Column(String, nullable=False)
    latency_bucket = Column(String, nullable=False)   # fast | slow | timeout | error
    error_message  = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.datetime.utcnow, server_default=func.now(), index=True)

    api      = relationship("Api", back_populates="probes")
    endpoint = relationship("Endpoint", back_populates="probes")


class Baseline(Base):
    __tablename__ = "baselines"

    id          = Column(Integer, primary_key=True)
    api_id      = Column(Integer, ForeignKey("apis.id", ondelete="CASCADE"), nullable=False, index=True)
    endpoint_id = Column(Integer, ForeignKey("endpoints.id", ondelete="CASCADE"), nullable=False, index=True)
    probe_id    = Column(Integer, ForeignKey("probes.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.datetime.utcnow, server_default=func.now(), index=True)

    # Set only by the explicit retire action; a retired baseline is never consulted
    retired_at = Column(DateTime, nullable=True)

    api   = relationship("Api", back_populates="baselines")
    probe = relationship("Probe")
