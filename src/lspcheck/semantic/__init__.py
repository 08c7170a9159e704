"""Class and type model extracted from Python source."""

from .construct import ClassConstruct, MethodSignature, Parameter
from .imports import ImportTable
from .inheritance import TypeHierarchy
from .python_indexer import PythonIndexer
from .registry import ClassRegistry, TypeScope
from .types import IntersectionType, NamedType, TypeDescriptor, UnionType

__all__ = [
    # Models
    "ClassConstruct",
    "MethodSignature",
    "Parameter",
    # Types
    "NamedType",
    "UnionType",
    "IntersectionType",
    "TypeDescriptor",
    # Indexing
    "PythonIndexer",
    "ImportTable",
    "ClassRegistry",
    "TypeScope",
    "TypeHierarchy",
]
