"""Infrastructure layer: configuration, persistence and partner clients."""
