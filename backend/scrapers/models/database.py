"""Declarative base shared by scraper SQLAlchemy models."""
from sqlalchemy.orm import declarative_base

Base = declarative_base()
