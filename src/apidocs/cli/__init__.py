"""apidocs command-line interface."""
