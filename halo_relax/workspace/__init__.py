from .tiled_workspace import CornerAccessError, TiledWorkspace, WorkspaceState

__all__ = ["CornerAccessError", "TiledWorkspace", "WorkspaceState"]
