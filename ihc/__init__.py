"""LK IHC controller client and device synchronization engine."""
