"""SDK version and the library identifier sent with every fetch."""

__version__ = "1.0.0"

LIBRARY = f"experiment-python-server/{__version__}"
