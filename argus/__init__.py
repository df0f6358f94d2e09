"""Argus — Portfolio performance scoring and cohort benchmarking engine.

Argus scores each client's insurance portfolio against an age-banded market
benchmark, keeps an append-only history of score snapshots, raises
notifications when a score or rating moves significantly, and ranks a client
against their age cohort on demand.

Runs alongside the agency CRM: the CRM owns policies and profiles, Argus only
reads them and writes snapshots and notifications.
"""

__version__ = "0.1.0"
