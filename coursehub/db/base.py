"""Declarative base for coursehub models."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
