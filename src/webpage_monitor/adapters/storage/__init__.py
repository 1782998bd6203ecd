"""Target storage adapters."""

from webpage_monitor.adapters.storage.yaml_store import (
    YamlTargetStore,
    export_targets,
    import_targets,
)

__all__ = ["YamlTargetStore", "export_targets", "import_targets"]
