"""Face-swap service.

The package wires the vendor task client, the task lifecycle manager, the
image pipeline and the generation history behind a thin FastAPI surface.
"""
