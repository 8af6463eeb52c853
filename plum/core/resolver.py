"""Resolution of user-supplied plugin names to full identities."""

import logging

from plum.core.errors import AmbiguousPluginError, InstallError
from plum.core.registry import InstalledPluginsRegistry
from plum.settings.document import validate_plugin_identity
from plum.settings.merge import MergeEngine
from plum.settings.store import ProjectPath

logger = logging.getLogger(__name__)


class UnresolvedPluginError(InstallError):
    """A bare plugin name matches nothing installed or configured."""

    def __init__(self, plugin_name: str):
        super().__init__(
            f"plugin '{plugin_name}' not found - specify full name (plugin@marketplace)", plugin_name
        )


def resolve_plugin_full_name(
    arg: str,
    registry: InstalledPluginsRegistry,
    merge: MergeEngine,
    project_path: ProjectPath = None,
    command: str = "enable",
) -> str:
    """Turn ``name`` or ``name@marketplace`` into a plugin identity.

    A qualified argument is only validated. A bare name is matched against
    registry entries first, then against every plugin mentioned in settings.

    Raises:
        InvalidPluginNameError: If a qualified argument is malformed
        UnresolvedPluginError: If a bare name matches nothing
        AmbiguousPluginError: If a bare name matches several identities
    """
    if "@" in arg:
        return validate_plugin_identity(arg)

    matches: list[str] = []
    for full_name in registry.load().plugins:
        if full_name.partition("@")[0] == arg and full_name not in matches:
            matches.append(full_name)
    for state in merge.merged_states(project_path):
        if state.name == arg and state.full_name not in matches:
            matches.append(state.full_name)

    if not matches:
        raise UnresolvedPluginError(arg)
    if len(matches) > 1:
        raise AmbiguousPluginError(arg, matches, command)
    logger.debug("Resolved %s to %s", arg, matches[0])
    return matches[0]
