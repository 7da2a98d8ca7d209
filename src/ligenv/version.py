from importlib.metadata import PackageNotFoundError, version


def get_version() -> str:
    """Returns the installed ligenv version."""
    try:
        return version("ligenv")
    except PackageNotFoundError:
        return "unknown"
