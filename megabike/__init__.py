"""MegaBike fantasy cycling backend."""
