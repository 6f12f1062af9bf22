"""
Namespace harvesting - derive autocomplete metadata from a live namespace.

Runs inside the interpreter subprocess after every execution. Produces the
payloads of the three side-channel blocks:
- completions: every public name, plus dotted ``name.member`` paths
- type_relationships: callable return types and per-type member lists
- sql_metadata: tables, columns and functions of recognized SQL connections

Introspecting arbitrary objects can raise anything, so every per-member
step swallows its own failure and the harvest continues with partial data.
"""

import inspect
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sage.introspection.providers import ProviderRegistry, SchemaProvider, default_registry
from sage.kernel.protocol import RESERVED_PREFIX

# Metaclasses whose instances are classes worth listing eagerly
CLASS_TYPES = ("type", "ABCMeta", "pybind11_type")
FUNCTION_TYPES = ("function", "builtin_function_or_method")


def is_reserved(name: str) -> bool:
    """Names hidden from every harvested set."""
    return name.startswith("_") or name.startswith(RESERVED_PREFIX)


def return_type_name(obj: Any) -> Optional[str]:
    """Name of the declared return annotation of a callable, if any."""
    try:
        annotation = inspect.signature(obj).return_annotation
    except Exception:
        return None

    if annotation is inspect.Signature.empty:
        return None

    name = getattr(annotation, "__name__", None)
    if isinstance(name, str) and name:
        return name
    return str(annotation).split(".")[-1].rstrip("'>")


def public_members(obj: Any) -> List[str]:
    try:
        return [member for member in dir(obj) if not member.startswith("_")]
    except Exception:
        return []


def _resolve_members(obj: Any) -> List[Tuple[str, Any]]:
    """Public (name, value) pairs; attributes that raise on access are skipped."""
    resolved = []
    for member in public_members(obj):
        try:
            resolved.append((member, getattr(obj, member)))
        except Exception:
            continue
    return resolved


def _append_unique(values: List[str], value: Any):
    text = str(value)
    if text not in values:
        values.append(text)


def _harvest_module(
    name: str,
    module: Any,
    completions: List[Dict[str, str]],
    return_types: Dict[str, str],
    type_methods: Dict[str, List[str]],
):
    completions.append({"name": name, "type": "module"})

    for member, member_obj in _resolve_members(module):
        member_type = type(member_obj).__name__
        full_name = f"{name}.{member}"
        completions.append({"name": full_name, "type": member_type})

        if callable(member_obj):
            returned = return_type_name(member_obj)
            if returned:
                return_types[full_name] = returned

        if member_type in CLASS_TYPES:
            type_name = getattr(member_obj, "__name__", None) or member
            if type_name not in type_methods:
                methods = public_members(member_obj)
                if methods:
                    type_methods[type_name] = methods
            # Calling a class returns an instance of it
            return_types[full_name] = type_name


def _harvest_value(
    name: str,
    obj: Any,
    completions: List[Dict[str, str]],
    return_types: Dict[str, str],
    type_methods: Dict[str, List[str]],
):
    obj_type = type(obj).__name__
    completions.append({"name": name, "type": obj_type})

    members = _resolve_members(obj)

    if obj_type not in type_methods:
        methods = []
        for member, member_obj in members:
            methods.append(member)
            if callable(member_obj):
                returned = return_type_name(member_obj)
                if returned:
                    return_types[f"{obj_type}.{member}"] = returned
        if methods:
            type_methods[obj_type] = methods

    for member, member_obj in members:
        completions.append({"name": f"{name}.{member}", "type": type(member_obj).__name__})


def harvest_namespace(
    namespace: Mapping[str, Any],
) -> Tuple[List[Dict[str, str]], Dict[str, str], Dict[str, List[str]]]:
    """
    Enumerate a namespace for completions and type relationships.

    Args:
        namespace: The interpreter's globals

    Returns:
        (completion items, return_types, type_methods)
    """
    completions: List[Dict[str, str]] = []
    return_types: Dict[str, str] = {}
    type_methods: Dict[str, List[str]] = {}

    # Snapshot so user objects mutating globals during getattr cannot break iteration
    snapshot = dict(namespace)

    for name, obj in snapshot.items():
        if is_reserved(name):
            continue

        obj_type = type(obj).__name__
        try:
            if obj_type == "module":
                _harvest_module(name, obj, completions, return_types, type_methods)
            elif obj_type in FUNCTION_TYPES or obj_type in CLASS_TYPES:
                completions.append({"name": name, "type": obj_type})
                if obj_type in FUNCTION_TYPES:
                    returned = return_type_name(obj)
                    if returned:
                        return_types[name] = returned
            else:
                _harvest_value(name, obj, completions, return_types, type_methods)
        except Exception:
            continue

    return completions, return_types, type_methods


def _harvest_connection(
    provider: SchemaProvider,
    connection: Any,
    tables: List[str],
    columns: List[str],
    functions: List[str],
):
    try:
        table_names = provider.list_tables(connection)
    except Exception:
        table_names = []

    for table in table_names:
        _append_unique(tables, table)
        try:
            column_names = provider.list_columns(connection, table)
        except Exception:
            continue
        for column in column_names:
            _append_unique(columns, f"{table}.{column}")
            _append_unique(columns, column)

    try:
        function_names = provider.list_functions(connection)
    except Exception:
        function_names = []
    for function in function_names:
        _append_unique(functions, function)


def harvest_sql(
    namespace: Mapping[str, Any], registry: Optional[ProviderRegistry] = None
) -> Dict[str, List[str]]:
    """
    Collect schema metadata from every recognized SQL connection in a namespace.

    Args:
        namespace: The interpreter's globals
        registry: Providers to consult (defaults to the built-in ones)

    Returns:
        {"tables": [...], "columns": [...], "functions": [...]}, each de-duplicated
    """
    registry = registry or default_registry()
    tables: List[str] = []
    columns: List[str] = []
    functions: List[str] = []

    for name, obj in dict(namespace).items():
        if is_reserved(name):
            continue
        provider = registry.find(obj)
        if provider is None:
            continue
        try:
            _harvest_connection(provider, obj, tables, columns, functions)
        except Exception:
            continue

    return {"tables": tables, "columns": columns, "functions": functions}


def empty_payloads() -> Dict[str, Any]:
    return {
        "completions": [],
        "type_relationships": {"return_types": {}, "type_methods": {}},
        "sql_metadata": {"tables": [], "columns": [], "functions": []},
    }


def harvest(
    namespace: Mapping[str, Any], registry: Optional[ProviderRegistry] = None
) -> Dict[str, Any]:
    """
    Build the three side-channel payloads, keyed by block type.

    A failing stage yields its empty payload instead of being omitted.
    """
    payloads = empty_payloads()

    try:
        completions, return_types, type_methods = harvest_namespace(namespace)
        payloads["completions"] = completions
        payloads["type_relationships"] = {
            "return_types": return_types,
            "type_methods": type_methods,
        }
    except Exception:
        pass

    try:
        payloads["sql_metadata"] = harvest_sql(namespace, registry)
    except Exception:
        pass

    return payloads
