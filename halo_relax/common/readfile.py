__all__ = ["readfile"]


def readfile(filename: str) -> str:
    """Return the entire content of the given text file."""
    with open(filename, "rt") as f:
        return f.read()
