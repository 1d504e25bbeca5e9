"""
FHE subsystem.

Components:
- session.py: encryption session lifecycle (uninitialized -> initializing -> ready)
- decryption.py: two-phase reveal/anchor coordinator
- relayer.py: HTTP relayer client (engine + reveal service)
- offline.py: in-process stand-in for demos
"""
