"""Virtual path normalisation for path-to-node resolution."""

import posixpath


def path_parts(path: str) -> list[str]:
    """Split a slash-separated path into its segments, root to leaf.

    The path is normalised first: ``.`` and ``..`` are collapsed and repeated
    separators dropped. A leading slash is implied, so ``..`` never climbs
    above the root.

    Examples:
        >>> path_parts("/Photos/2020/summer.jpg")
        ['Photos', '2020', 'summer.jpg']
        >>> path_parts("Photos//./2020/../2021/")
        ['Photos', '2021']
        >>> path_parts("/..")
        []
    """
    normalized = posixpath.normpath("/" + path)
    # normpath keeps a leading "//", so filter empty segments rather than slicing.
    return [part for part in normalized.split("/") if part]
