"""ERP addon engine: manifest discovery, dependency resolution, registry, runtime loading."""
