"""Front-end pipeline glue for parsing, splicing conditional heads and analysis."""

from .pipeline import FrontEndResult, run_frontend

__all__ = ["FrontEndResult", "run_frontend"]
