"""Compilation server and client, UF2 reader and inspection helpers for a Pico 2 simulator."""

__version__ = "0.1.0"