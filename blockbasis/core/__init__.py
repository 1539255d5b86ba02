"""Core ECS machinery and numerical building blocks."""
