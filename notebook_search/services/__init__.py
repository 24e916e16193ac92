"""Search engine services: matching, scoping, navigation and replacement."""
