"""Concrete adapters: HTTP spec source, generator process, types server, config file."""
