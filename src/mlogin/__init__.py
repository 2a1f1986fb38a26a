"""
mlogin: interactive shell sessions inside remote compute jobs.

A session provisions a single-phase job whose bootstrap asset starts an agent
inside the compute sandbox. The agent calls back over a signed websocket and
the local terminal is relayed to a shell running next to the job's data.
"""

__version__ = "0.1.0"
