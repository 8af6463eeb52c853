"""Errors that abort an install for one plugin."""


class InstallError(Exception):
    """Error during plugin installation."""

    def __init__(self, message: str, plugin_name: str | None = None):
        self.plugin_name = plugin_name
        super().__init__(message)


class PluginNotFoundError(InstallError):
    """No catalog entry matches the requested plugin."""

    def __init__(self, plugin_name: str, marketplace: str | None = None):
        self.marketplace = marketplace
        if marketplace:
            message = f"plugin '{plugin_name}' not found in marketplace '{marketplace}'"
        else:
            message = f"plugin '{plugin_name}' not found in any marketplace"
        super().__init__(message, plugin_name)


class AmbiguousPluginError(InstallError):
    """Several marketplaces offer a plugin with the requested name."""

    def __init__(self, plugin_name: str, matches: list[str], command: str = "install"):
        self.matches = matches
        listing = "\n".join(f"  {m}" for m in matches)
        message = (
            f"plugin '{plugin_name}' found in multiple marketplaces:\n{listing}\n"
            f"Specify with: plum {command} {plugin_name}@<marketplace>"
        )
        super().__init__(message, plugin_name)


class NotInstallableError(InstallError):
    """The catalog marks the plugin as not installable by Plum."""

    def __init__(self, plugin_name: str, reason: str):
        self.reason = reason
        super().__init__(f"plugin '{plugin_name}' cannot be installed: {reason}", plugin_name)


class DownloadLimitError(InstallError):
    """A plugin's files exceed the cumulative download budget."""

    def __init__(self, plugin_name: str, limit: int):
        self.limit = limit
        super().__init__(
            f"plugin download size exceeded limit ({limit // (1024 * 1024)} MB)", plugin_name
        )


class UnsafePluginPathError(InstallError):
    """A plugin declares a file path outside its cache directory."""
