import os

def safe_path(relative_path):
    """Return an absolute path to a file relative to this package directory.
    Removes dependency on the current working directory."""

    return os.path.abspath(os.path.join(os.path.dirname(__file__),
                                        relative_path))

def base_name(path) -> str:
    """File name without directory or extension: 'data/jp_asp.geojson' -> 'jp_asp'"""
    return os.path.splitext(os.path.basename(str(path)))[0]
