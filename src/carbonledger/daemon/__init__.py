"""Ledger daemon: storage, engine, HTTP binding."""
