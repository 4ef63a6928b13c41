"""Runtime wiring: model resolution, agent service and application assembly."""
