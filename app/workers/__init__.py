"""
Command-line entry points.

- controller_cli: ``motorctl``, runs the supervised controller
- client_cli: ``motorctl-client``, sends/submits/watches commands
"""
