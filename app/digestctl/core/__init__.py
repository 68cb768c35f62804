"""Core building blocks shared by traversal and assembly."""
