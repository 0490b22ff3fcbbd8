"""Critical-line solver and its constructors."""

from critline.cla.factory import cla_from_arrays, cla_from_pandas, markowitz_cla
from critline.cla.solver import CLA

__all__ = ["CLA", "markowitz_cla", "cla_from_arrays", "cla_from_pandas"]
