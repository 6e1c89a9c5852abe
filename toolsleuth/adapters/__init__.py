"""External adapters for the toolsleuth diagnostic tool.

This package contains all external dependencies (mitmproxy, child
processes, the filesystem) and provides implementations of the core
port interfaces.

Adapter Organization:

- channel/: Marker-framed diagnosis channel (writer and reader)
- proxy/: mitmproxy addon and the mitmdump process
- client/: The claude CLI that sends the triggering request
- preflight/: Checks for required programs and the CA certificate
- notification/: Persisting and reporting the final diagnosis
"""
