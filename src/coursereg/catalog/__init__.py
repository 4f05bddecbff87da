"""Catalog package - Course metadata lookup."""

from coursereg.catalog.accessor import MAX_COURSE_CREDIT_HOURS, CatalogAccessor
from coursereg.catalog.exceptions import CourseExistsError, PrerequisiteCycleError
from coursereg.catalog.models import Catalog, CourseInfo, CourseStatistics

__all__ = [
    "MAX_COURSE_CREDIT_HOURS",
    "Catalog",
    "CatalogAccessor",
    "CourseExistsError",
    "CourseInfo",
    "CourseStatistics",
    "PrerequisiteCycleError",
]
