"""Domain Layer: models, value objects and interfaces with no infrastructure dependencies."""
