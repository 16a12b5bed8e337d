"""Client layer: Flask HTTP API and command-line tools."""
