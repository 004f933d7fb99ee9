"""Impersonaid: simulate reader personas reviewing documentation."""

__version__ = "1.0.0"

from .config import AppConfig, ReductionConfig, load_config  # noqa: E402

__all__ = ["AppConfig", "ReductionConfig", "load_config", "__version__"]
