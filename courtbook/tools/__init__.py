"""Collaborator contracts and the in-memory mock backend."""
