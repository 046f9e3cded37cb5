"""
@module: fse.meta
@depends:
@exports: component, component_metadata, registered_components
@data_flow: decorator metadata -> component registry -> runner log / architecture docs
"""

from typing import Any, Dict, List, Optional

# Component name -> decorated class, in import order
_REGISTRY: Dict[str, type] = {}


def component(
    name: str,
    responsibility: str,
    depends_on: Optional[List[str]] = None,
):
    """
    Register a class as a pipeline component.

    The metadata is stored on the class as `__component_metadata__` and the
    class is listed by `registered_components()`. Registering a second class
    under the same name replaces the first.

    Args:
        name: Component name (e.g., "EvaluationHarness")
        responsibility: Brief description of the component's role
        depends_on: Component names this one consumes

    Example:
        @component(
            name="FeatureSelector",
            responsibility="Ranks significant attributes and proposes feature sets",
            depends_on=["GroupSignificanceTester"],
        )
        class FeatureSelector:
            ...
    """
    metadata = {
        "name": name,
        "responsibility": responsibility,
        "depends_on": list(depends_on or []),
    }

    def register(cls: type) -> type:
        cls.__component_metadata__ = metadata
        _REGISTRY[name] = cls
        return cls

    return register


def component_metadata(obj: Any) -> Optional[Dict[str, Any]]:
    """Return the component metadata of a decorated class (or instance), if any."""
    cls = obj if isinstance(obj, type) else type(obj)
    return getattr(cls, "__component_metadata__", None)


def registered_components() -> List[Dict[str, Any]]:
    """Metadata of every registered component, in registration order."""
    return [
        dict(
            cls.__component_metadata__,
            depends_on=list(cls.__component_metadata__["depends_on"]),
            cls=cls.__qualname__,
        )
        for cls in _REGISTRY.values()
    ]
