from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Type

from ...domain._function import Function

_FUNCTION_REGISTRY: dict[str, Type[Function]] = {}
_REGISTERED_NAMES: dict[Type[Function], str] = {}


def register_function(
    name: Optional[str] = None,
) -> Callable[[Type[Function]], Type[Function]]:
    """
    Decorator registering a Function class for config-based reconstruction.

    Parameters
    ----------
    name : str, optional
        Key written to the ``"type"`` field of serialized nodes. Defaults to
        the class name.
    """

    def deco(cls: Type[Function]) -> Type[Function]:
        key = name or cls.__name__
        _FUNCTION_REGISTRY[key] = cls
        _REGISTERED_NAMES[cls] = key
        return cls

    return deco


def function_to_config(f: Function) -> dict[str, Any]:
    """
    Convert a Function into a JSON-serializable node.

    Node format
    -----------
    {
      "type": "LayerNorm",
      "config": {"eps": 1e-05}
    }
    """
    cls = type(f)
    return {"type": _REGISTERED_NAMES.get(cls, cls.__name__), "config": f.get_config()}


def function_from_config(node: Dict[str, Any]) -> Function:
    """
    Rebuild a Function from a node produced by `function_to_config`.

    Raises
    ------
    ValueError
        If the node's type was never registered.
    """
    type_name = str(node["type"])
    if type_name not in _FUNCTION_REGISTRY:
        raise ValueError(
            f"Unknown function type '{type_name}'. "
            f"Register it via @register_function."
        )

    return _FUNCTION_REGISTRY[type_name].from_config(node.get("config", {}) or {})
