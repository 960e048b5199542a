"""Pure types and schedule evaluation for the batch system.  ZERO I/O."""
