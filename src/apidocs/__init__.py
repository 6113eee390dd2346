"""apidocs: turn documentation websites into queryable knowledge bases."""

__version__ = "0.1.0"
