"""Rememmo command-line front end."""
