"""
Fleet Kernel

Access scoping and ride lifecycle for a multi-tenant fleet:
- Per-request scope resolution from the live tenancy graph
- One authorization guard shared by reads and writes
- Ride and dispute state machines with compare-and-set transitions
- Append-only dispute threads
- Week summaries derived from rides on every read
"""

__version__ = "0.1.0"
