"""Domain layer - Entities, result types and collaborator interfaces."""
