"""Synchronization core: config, domain, contracts and services.

The core does not print; it logs. The CLI decides how results are shown.
"""
