# Engine factory for the record store
from .engine import build_engine, dispose_engine, get_engine
