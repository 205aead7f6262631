"""Rememmo — a note store where every edit is an immutable, restorable snapshot."""
