"""Platform components: connectors, pipeline, stores and model boundaries."""
